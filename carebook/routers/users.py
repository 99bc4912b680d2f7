"""
User profile routes.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import config
from ..db import get_db
from ..dependencies import get_current_user, require_admin
from ..models import User
from ..schemas import UserUpdateRequest, UserOut, dump
from ..security import hash_password, normalize_email

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return {"user": dump(UserOut, user)}


@router.put("/profile")
def update_profile(req: UserUpdateRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if req.name is not None:
        user.name = req.name

    if req.email is not None:
        email = normalize_email(req.email)
        if email != user.email:
            if db.query(User).filter(User.email == email).first():
                raise HTTPException(status_code=400, detail="Email already in use")
            user.email = email

    if req.password is not None:
        if len(req.password) < config.MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters",
            )
        user.password_hash = hash_password(req.password)

    db.commit()
    db.refresh(user)
    return {"message": "Profile updated successfully", "user": dump(UserOut, user)}


@router.delete("/profile/{user_id}")
def delete_profile(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    target = db.get(User, user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    db.delete(target)
    db.commit()
    return {"message": "User profile deleted successfully"}
