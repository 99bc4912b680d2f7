"""
test_security.py
================
Unit tests for password hashing, tokens, OTPs, settings and logging setup.
"""

import configparser
import datetime
import os
from pathlib import Path

import pytest

from carebook import config
from carebook.logging_config import build_logging_config
from carebook.security import (
    InvalidTokenError, create_access_token, decode_access_token, generate_otp,
    hash_password, normalize_email, verify_password,
)

DEPLOY_DIR = Path(__file__).resolve().parent.parent / "deploy"


def test_password_hashing():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", "")


def test_token_carries_user():
    payload = decode_access_token(create_access_token(7, "a@example.com", "doctor"))
    assert payload["sub"] == "7"
    assert payload["role"] == "doctor"


def test_expired_and_tampered_tokens():
    expired = create_access_token(7, "a@example.com", "user", expires_delta=datetime.timedelta(seconds=-1))
    with pytest.raises(InvalidTokenError):
        decode_access_token(expired)
    with pytest.raises(InvalidTokenError):
        decode_access_token(create_access_token(7, "a@example.com", "user") + "x")


def test_otp_and_email_normalisation():
    otp = generate_otp()
    assert len(otp) == 6 and otp.isdigit()
    assert normalize_email("  Asha@Example.COM ") == "asha@example.com"


def test_allowed_origins_in_development():
    assert "http://localhost:5173" in config.allowed_origins()


def test_logging_config_writes_out_and_error_logs(tmp_path):
    cfg = build_logging_config(str(tmp_path), "DEBUG")
    handlers = cfg["handlers"]
    assert handlers["out_file"]["filename"].endswith("carebook-out.log")
    assert handlers["error_file"]["level"] == "ERROR"
    assert cfg["root"]["level"] == "DEBUG"
    assert cfg["loggers"]["sqlalchemy.engine"]["level"] == "WARNING"


def test_console_and_supervisor_logs_do_not_collide(tmp_path):
    """
    ✅ Test that process supervision and the app write different log files.
    Expected: console on stdout; supervisord's capture files are not the
    files the app rotates itself.
    """
    cfg = build_logging_config(str(tmp_path), "INFO")
    assert cfg["handlers"]["console"]["stream"] == "ext://sys.stdout"
    app_files = {
        os.path.basename(cfg["handlers"][name]["filename"]) for name in ("out_file", "error_file")
    }

    conf = configparser.ConfigParser(interpolation=None)
    conf.read(DEPLOY_DIR / "supervisord.conf")
    program = conf["program:carebook"]
    captured = {os.path.basename(program["stdout_logfile"]), os.path.basename(program["stderr_logfile"])}

    assert len(captured) == 2
    assert not captured & app_files
