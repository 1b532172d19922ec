from .room import Room
from .user import User

__all__ = ["Room", "User"]
