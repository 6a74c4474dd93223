"""User registration route."""
from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.api.schemas.user import UserCreateRequest, UserResponse
from app.db.deps import get_db
from app.observability.tracing import trace
from app.services.user_service import get_or_create_user

router = APIRouter()


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED, tags=["users"])
def register_user(
    payload: UserCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> UserResponse:
    """Create the row anchoring a user's data; identity itself is managed elsewhere."""
    user_id = payload.user_id or uuid4()
    request_id = getattr(http_request.state, "request_id", None)

    try:
        with trace("user.register", metadata={"route": "/users"}, user_id=str(user_id), request_id=request_id):
            user = get_or_create_user(db, user_id, payload.display_name)
            db.commit()
            db.refresh(user)
    except Exception:
        db.rollback()
        raise

    return UserResponse(
        id=user.id,
        display_name=user.display_name,
        created_at=user.created_at,
        request_id=request_id or "",
    )
