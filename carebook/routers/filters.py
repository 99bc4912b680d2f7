"""
Filter bar values for the doctor listing (specialist, location, experience, gender).
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import require_onboarding_access
from ..models import Filter, FilterType, User
from ..schemas import FiltersUpdateRequest

router = APIRouter(prefix="/api/filters", tags=["filters"])

VALID_FILTER_TYPES = [t.value for t in FilterType]


@router.get("")
@router.get("/", include_in_schema=False)
def get_filters(db: Session = Depends(get_db)):
    filters = db.query(Filter).order_by(Filter.filter_type).all()
    return {"success": True, "data": {f.filter_type.value: f.values or [] for f in filters}}


@router.get("/{filter_type}")
def get_filter(filter_type: str, db: Session = Depends(get_db)):
    if filter_type not in VALID_FILTER_TYPES:
        raise HTTPException(status_code=400, detail="Invalid filter type")

    record = db.query(Filter).filter(Filter.filter_type == FilterType(filter_type)).first()
    if not record:
        raise HTTPException(status_code=404, detail="Filter not found")
    return {"success": True, "data": {"filterType": filter_type, "values": record.values or []}}


@router.post("")
@router.post("/", include_in_schema=False)
def update_filters(req: FiltersUpdateRequest, user: User = Depends(require_onboarding_access),
                   db: Session = Depends(get_db)):
    """Create or replace the values of each known filter type; unknown types are ignored."""
    results = []
    for filter_type, values in req.filters.items():
        if filter_type not in VALID_FILTER_TYPES:
            continue
        record = db.query(Filter).filter(Filter.filter_type == FilterType(filter_type)).first()
        if record:
            record.values = list(values)
        else:
            record = Filter(filter_type=FilterType(filter_type), values=list(values))
            db.add(record)
        results.append({"filterType": filter_type, "values": list(values)})
    db.commit()

    return {"success": True, "message": "Filters updated successfully", "data": results}
