from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Response

from ..schemas import UserCreate, UserCredentials, UserResponse
from ..services.session_store import SessionStore
from .deps import store_dependency

router = APIRouter(prefix="/users", tags=["users"])


def _require_user_token(store: SessionStore, user_id: UUID, token: Optional[str]) -> None:
    if not token or not store.validate_user_token(user_id, token):
        raise HTTPException(401, "User token required")


@router.post("", response_model=UserCredentials, status_code=201)
def create_user(payload: UserCreate, store: store_dependency):
    return store.create_user(payload.username)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: UUID, store: store_dependency):
    return store.get_user(user_id)


@router.post("/{user_id}/token", response_model=UserCredentials)
def rotate_token(user_id: UUID, store: store_dependency, x_user_token: Optional[str] = Header(None)):
    _require_user_token(store, user_id, x_user_token)
    return store.rotate_user_token(user_id)


@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: UUID, store: store_dependency, x_user_token: Optional[str] = Header(None)):
    _require_user_token(store, user_id, x_user_token)
    store.delete_user(user_id)
    return Response(status_code=204)
