"""
test_client.py
==============
Unit tests for CareApiClient with a mocked requests session.
"""

from unittest.mock import MagicMock

import pytest
import requests

from carebook.client import ApiError, CareApiClient


def _response(status_code=200, body=None, ok=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = status_code < 400 if ok is None else ok
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body if body is not None else {}
    return resp


def _client(*responses, side_effect=None):
    session = MagicMock()
    session.headers = {}
    if side_effect is not None:
        session.request.side_effect = side_effect
    else:
        session.request.side_effect = list(responses)
    return CareApiClient("http://api.test/", session=session), session


def test_login_keeps_token():
    client, session = _client(_response(body={"token": "abc", "user": {"id": 1}}))
    assert client.login("a@example.com", "secret123") == {"id": 1}
    assert session.headers["Authorization"] == "Bearer abc"

    method, url = session.request.call_args.args
    assert (method, url) == ("POST", "http://api.test/api/auth/login")
    assert session.request.call_args.kwargs["timeout"] == 15


def test_error_detail_becomes_message():
    client, _ = _client(_response(409, {"detail": "Time slot is no longer available"}))
    with pytest.raises(ApiError) as exc:
        client.book_appointment(1, 2)
    assert exc.value.message == "Time slot is no longer available"
    assert exc.value.is_conflict


def test_validation_error_list_and_unparseable_body():
    client, _ = _client(
        _response(422, {"detail": [{"msg": "Field required"}]}),
        _response(500, ValueError("no json")),
    )
    with pytest.raises(ApiError) as exc:
        client.get_doctor(1)
    assert exc.value.message == "Field required"

    with pytest.raises(ApiError) as exc:
        client.get_doctor(1)
    assert exc.value.message == "Failed to fetch doctor"
    assert exc.value.status_code == 500


def test_timeout_is_flagged():
    client, _ = _client(side_effect=requests.Timeout("slow"))
    with pytest.raises(ApiError) as exc:
        client.nearby_doctors()
    assert exc.value.timed_out
    assert exc.value.status_code is None


def test_connection_error_message():
    client, _ = _client(side_effect=requests.ConnectionError("refused"))
    with pytest.raises(ApiError) as exc:
        client.affordable_doctors()
    assert exc.value.message == "Failed to fetch doctors. Please check your connection."


def test_book_appointment_sends_camel_case():
    client, session = _client(_response(201, {"success": True, "data": {"id": 5}}))
    client.book_appointment(3, 9, "voice_call", "notes")
    assert session.request.call_args.kwargs["json"] == {
        "doctorId": 3, "timeSlotId": 9, "appointmentType": "voice_call", "notes": "notes",
    }


def test_slot_counts_batches_and_failures():
    """
    ✅ Test counting free slots for a month view.
    Expected: one request per date, a failing date counts as 0.
    """
    def fake_request(method, url, params=None, **kwargs):
        if params["date"] == "2030-01-03":
            raise requests.ConnectionError("down")
        slots = [{"id": i} for i in range(int(params["date"][-1]))]
        return _response(body={"success": True, "data": {"availableSlots": slots}})

    workers = []

    def new_session():
        worker = MagicMock()
        worker.headers = {}
        worker.request.side_effect = fake_request
        workers.append(worker)
        return worker

    session = MagicMock()
    session.headers = {}
    client = CareApiClient("http://api.test/", token="abc", session=session, session_factory=new_session)
    dates = [f"2030-01-0{d}" for d in range(1, 8)]
    counts = client.slot_counts(4, dates, batch_size=3)

    assert counts == {
        "2030-01-01": 1, "2030-01-02": 2, "2030-01-03": 0, "2030-01-04": 4,
        "2030-01-05": 5, "2030-01-06": 6, "2030-01-07": 7,
    }
    # one short-lived session per lookup, carrying the client's auth header
    assert len(workers) == len(dates)
    assert all(w.request.call_count == 1 for w in workers)
    assert all(w.headers["Authorization"] == "Bearer abc" for w in workers)
    assert all(w.close.called for w in workers)
    session.request.assert_not_called()


def test_stream_chat_yields_chunks():
    resp = _response()
    resp.iter_content.return_value = iter(["Hello ", "", "there"])
    client, session = _client(resp)

    assert list(client.stream_chat("t1", "hi")) == ["Hello ", "there"]
    assert session.request.call_args.kwargs["stream"] is True
    resp.close.assert_called_once()


def test_create_thread_and_transcribe():
    client, _ = _client(
        _response(201, {"thread_id": "abc123", "language": "en", "mode": "normal"}),
        _response(body={"user_query": "fever since yesterday"}),
    )
    assert client.create_thread() == "abc123"
    assert client.transcribe(b"audio") == "fever since yesterday"
