# roomstore/schemas.py
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class RoomResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    host: str


class HostResult(BaseModel):
    room_id: int
    room_token: str


class HostUpdate(BaseModel):
    host: str


class RoomExists(BaseModel):
    exists: bool


class TokenCheck(BaseModel):
    token: str


class TokenValidity(BaseModel):
    valid: bool


class UserCreate(BaseModel):
    username: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str


class UserCredentials(UserResponse):
    token: str


class AuthUser(BaseModel):
    id: UUID
    username: str
    token: str
