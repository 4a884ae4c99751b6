# promo-allocation-backend/app/api/v1/endpoints/users.py

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    status,
    Header,
)
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.db import models
from app.schemas import user as user_schema

router = APIRouter()


def get_current_user(
    db: Session = Depends(get_db),
    # The gateway forwards the authenticated principal as "X-User-Id"
    x_user_id: int | None = Header(default=None),
):
    """
    Resolve the current principal from the request header.
    """
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )

    user = db.query(models.User).filter(models.User.id == x_user_id).first()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


@router.get("/me", response_model=user_schema.UserBase)
def read_users_me(current_user: models.User = Depends(get_current_user)):
    """
    Current principal.
    """
    return current_user
