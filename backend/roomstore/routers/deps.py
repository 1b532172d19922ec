import base64
import binascii
import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException
from pydantic import ValidationError as SchemaError

from ..models import User
from ..schemas import AuthUser
from ..services.session_store import SessionStore, get_store

logger = logging.getLogger(__name__)

store_dependency = Annotated[SessionStore, Depends(get_store)]


def authorized_user(
    store: store_dependency,
    authorization: Optional[str] = Header(None),
) -> User:
    """
    Resolve the ``Authorization`` header, a base64-encoded JSON object
    ``{"id": ..., "username": ..., "token": ...}``, to a registered user.
    """
    if not authorization:
        raise HTTPException(401, "Authorization header is required")

    try:
        decoded = base64.b64decode(authorization, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(401, "Invalid Authorization header, unexpected encoding")

    try:
        creds = AuthUser.model_validate_json(decoded)
    except SchemaError as e:
        logger.warning("Failed to parse Authorization header: %s", e.error_count())
        raise HTTPException(401, "Invalid Authorization header, unexpected format")

    user = store.authenticate_user(creds.id, creds.token)
    if user is None or user.username != creds.username:
        raise HTTPException(401, "Invalid Authorization header, credentials rejected")
    return user


user_dependency = Annotated[User, Depends(authorized_user)]


def require_room_token(store: SessionStore, room_id: int, token: Optional[str]) -> None:
    if not token or not store.validate_room_token(room_id, token):
        raise HTTPException(401, "Room token required")
