import logging
from typing import Optional

from fastapi import APIRouter, Header, Response

from ..schemas import HostResult, HostUpdate, RoomExists, RoomResponse, TokenCheck, TokenValidity
from .deps import require_room_token, store_dependency, user_dependency

router = APIRouter(tags=["rooms"])
logger = logging.getLogger(__name__)


@router.get("/host", response_model=HostResult)
def host_room(store: store_dependency, user: user_dependency):
    logger.info("Host request from %s", user.username)
    room = store.host_room(str(user.id))
    return HostResult(room_id=room.id, room_token=room.token)


@router.get("/rooms/{room_id}", response_model=RoomResponse)
def get_room(room_id: int, store: store_dependency):
    return store.get_room(room_id)


@router.get("/rooms/{room_id}/exists", response_model=RoomExists)
def room_exists(room_id: int, store: store_dependency):
    return RoomExists(exists=store.room_exists(room_id))


@router.post("/rooms/{room_id}/validate", response_model=TokenValidity)
def validate_room_token(room_id: int, payload: TokenCheck, store: store_dependency):
    return TokenValidity(valid=store.validate_room_token(room_id, payload.token))


@router.patch("/rooms/{room_id}/host", response_model=RoomResponse)
def reassign_host(
    room_id: int,
    payload: HostUpdate,
    store: store_dependency,
    x_room_token: Optional[str] = Header(None),
):
    require_room_token(store, room_id, x_room_token)
    return store.reassign_host(room_id, payload.host)


@router.delete("/rooms/{room_id}", status_code=204)
def delete_room(room_id: int, store: store_dependency, x_room_token: Optional[str] = Header(None)):
    require_room_token(store, room_id, x_room_token)
    store.delete_room(room_id)
    return Response(status_code=204)
