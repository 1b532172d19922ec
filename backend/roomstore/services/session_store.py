import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import Settings, get_settings
from ..core.exceptions import NotFoundError, StorageError, ValidationError
from ..core.security import generate_token, hash_token, is_token_hash, tokens_match, verify_token
from ..models import Room, User

logger = logging.getLogger(__name__)

T = TypeVar("T")

# rooms.id is a PostgreSQL serial (int4).
MAX_ROOM_ID = 2 ** 31 - 1

# Connection resets, timeouts, deadlocks and serialization failures all
# surface as one of these.
TRANSIENT_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


def _require_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must be a non-empty string")
    return value


def _parse_room_id(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("room id", f"expected an integer, got {value!r}")
    if not 1 <= value <= MAX_ROOM_ID:
        raise ValidationError("room id", f"must be between 1 and {MAX_ROOM_ID}, got {value}")
    return value


def _parse_user_id(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError("user id", f"expected a UUID, got {value!r}") from None


@dataclass(frozen=True)
class IssuedUser:
    """A user together with the plain token just issued to them.

    Only the bcrypt hash is persisted; this is the one chance to hand the
    token to its owner.
    """
    id: uuid.UUID
    username: str
    token: str


class SessionStore:
    """
    Rooms and users with token issue/validation on top of a relational database.

    Every public method runs in its own short-lived session and transaction.
    The store keeps no locks between calls; id uniqueness comes from the
    database sequence and concurrent writes are serialized by row locks.
    """

    def __init__(self, session_factory: sessionmaker, settings: Optional[Settings] = None):
        self._session_factory = session_factory
        self._settings = settings or get_settings()

    def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        attempts = self._settings.retry_attempts
        for attempt in range(1, attempts + 1):
            db = self._session_factory()
            try:
                with db.begin():
                    return work(db)
            except TRANSIENT_ERRORS as e:
                if attempt >= attempts:
                    logger.error("%s failed after %d attempts: %s", operation, attempt, e)
                    raise StorageError(operation, str(e), transient=True) from e
                delay = self._settings.retry_backoff * (2 ** (attempt - 1))
                logger.warning("Transient storage error in %s (attempt %d/%d), retrying in %.2fs: %s",
                               operation, attempt, attempts, delay, e)
                time.sleep(delay)
            except SQLAlchemyError as e:
                logger.exception("Storage error in %s", operation)
                raise StorageError(operation, str(e)) from e
            finally:
                db.close()

    def _new_token(self) -> str:
        return generate_token(self._settings.token_bytes)

    def _hash(self, token: str) -> str:
        return hash_token(token, self._settings.token_hash_rounds)

    def _verify(self, stored_hash: Optional[str], token) -> bool:
        return verify_token(stored_hash, token, self._settings.token_hash_rounds)

    def _check_host(self, db: Session, host: str) -> None:
        if not self._settings.require_host_user:
            return
        try:
            user_id = _parse_user_id(host)
        except ValidationError:
            raise ValidationError("host", f"{host!r} is not a user id") from None
        if db.get(User, user_id) is None:
            raise ValidationError("host", f"{host} is not a registered user")

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def create_room(self, host: str) -> Room:
        host = _require_text(host, "host")

        def _create(db: Session) -> Room:
            self._check_host(db, host)
            room = Room(host=host, token=self._new_token())
            db.add(room)
            db.flush()
            return room

        room = self._run("create_room", _create)
        logger.info("Created room %s for host %s", room.id, room.host)
        return room

    def get_room(self, room_id: int) -> Room:
        room_id = _parse_room_id(room_id)
        room = self._run("get_room", lambda db: db.get(Room, room_id))
        if room is None:
            raise NotFoundError("room", room_id)
        return room

    def room_exists(self, room_id: int) -> bool:
        try:
            room_id = _parse_room_id(room_id)
        except ValidationError:
            return False
        found = self._run("room_exists", lambda db: db.scalar(select(Room.id).where(Room.id == room_id)))
        return found is not None

    def list_rooms(self) -> List[Room]:
        return self._run("list_rooms", lambda db: list(db.scalars(select(Room).order_by(Room.id))))

    def find_room_by_host(self, host: str) -> Optional[Room]:
        host = _require_text(host, "host")
        return self._run(
            "find_room_by_host",
            lambda db: db.scalars(select(Room).where(Room.host == host).order_by(Room.id).limit(1)).first(),
        )

    def host_room(self, host: str) -> Room:
        """Return the room ``host`` already holds, creating one if there is none."""
        host = _require_text(host, "host")

        def _get_or_create(db: Session) -> Room:
            self._check_host(db, host)
            room = db.scalars(select(Room).where(Room.host == host).order_by(Room.id).limit(1)).first()
            if room is not None:
                return room
            room = Room(host=host, token=self._new_token())
            db.add(room)
            db.flush()
            logger.info("Created room %s for host %s", room.id, host)
            return room

        return self._run("host_room", _get_or_create)

    def validate_room_token(self, room_id: int, token: str) -> bool:
        try:
            room_id = _parse_room_id(room_id)
        except ValidationError:
            return tokens_match(None, token)

        stored = self._run(
            "validate_room_token",
            lambda db: db.scalar(select(Room.token).where(Room.id == room_id)),
        )
        valid = tokens_match(stored, token)
        if not valid:
            logger.warning("Room token rejected for room %s", room_id)
        return valid

    def reassign_host(self, room_id: int, new_host: str) -> Room:
        room_id = _parse_room_id(room_id)
        new_host = _require_text(new_host, "host")

        def _reassign(db: Session) -> Room:
            self._check_host(db, new_host)
            room = db.get(Room, room_id, with_for_update=True)
            if room is None:
                raise NotFoundError("room", room_id)
            room.host = new_host
            db.flush()
            return room

        room = self._run("reassign_host", _reassign)
        logger.info("Room %s handed over to host %s", room.id, room.host)
        return room

    def delete_room(self, room_id: int) -> None:
        room_id = _parse_room_id(room_id)

        def _delete(db: Session) -> None:
            result = db.execute(delete(Room).where(Room.id == room_id))
            if result.rowcount == 0:
                raise NotFoundError("room", room_id)

        self._run("delete_room", _delete)
        logger.info("Deleted room %s", room_id)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, username: str, user_id=None) -> IssuedUser:
        if not isinstance(username, str):
            raise ValidationError("username", "must be a string")
        new_id = _parse_user_id(user_id) if user_id is not None else uuid.uuid4()
        token = self._new_token()
        token_hash = self._hash(token)

        def _create(db: Session) -> User:
            user = User(id=new_id, username=username, token=token_hash)
            db.add(user)
            db.flush()
            return user

        user = self._run("create_user", _create)
        logger.info("Registered user %s (%s)", user.id, user.username)
        return IssuedUser(id=user.id, username=user.username, token=token)

    def register_account(self, user_id, username: str, token: str) -> bool:
        """
        Insert a pre-provisioned user with a known token.

        ``token`` may be a bcrypt hash, stored as given, or a plain token,
        hashed first. Returns False without touching the record when
        ``user_id`` is already registered.
        """
        user_id = _parse_user_id(user_id)
        if not isinstance(username, str):
            raise ValidationError("username", "must be a string")
        token = _require_text(token, "token")
        if is_token_hash(token):
            token_hash = token
        else:
            try:
                token_hash = self._hash(token)
            except ValueError as e:
                raise ValidationError("token", str(e)) from None

        def _register(db: Session) -> bool:
            if db.get(User, user_id) is not None:
                return False
            db.add(User(id=user_id, username=username, token=token_hash))
            db.flush()
            return True

        return self._run("register_account", _register)

    def get_user(self, user_id) -> User:
        user_id = _parse_user_id(user_id)
        user = self._run("get_user", lambda db: db.get(User, user_id))
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def validate_user_token(self, user_id, token: str) -> bool:
        try:
            user_id = _parse_user_id(user_id)
        except ValidationError:
            return self._verify(None, token)

        stored = self._run(
            "validate_user_token",
            lambda db: db.scalar(select(User.token).where(User.id == user_id)),
        )
        valid = self._verify(stored, token)
        if not valid:
            logger.warning("User token rejected for user %s", user_id)
        return valid

    def authenticate_user(self, user_id, token: str) -> Optional[User]:
        """Return the user if ``token`` is theirs, otherwise None."""
        try:
            user_id = _parse_user_id(user_id)
        except ValidationError:
            self._verify(None, token)
            return None

        user = self._run("authenticate_user", lambda db: db.get(User, user_id))
        if not self._verify(user.token if user is not None else None, token):
            logger.warning("Authentication failed for user %s", user_id)
            return None
        return user

    def rotate_user_token(self, user_id) -> IssuedUser:
        user_id = _parse_user_id(user_id)
        token = self._new_token()
        token_hash = self._hash(token)

        def _rotate(db: Session) -> User:
            # Single UPDATE: the old token stops validating as the new one starts.
            result = db.execute(
                update(User).where(User.id == user_id).values(token=token_hash)
            )
            if result.rowcount == 0:
                raise NotFoundError("user", user_id)
            return db.get(User, user_id, populate_existing=True)

        user = self._run("rotate_user_token", _rotate)
        logger.info("Rotated token for user %s", user.id)
        return IssuedUser(id=user.id, username=user.username, token=token)

    def delete_user(self, user_id) -> None:
        user_id = _parse_user_id(user_id)

        def _delete(db: Session) -> None:
            result = db.execute(delete(User).where(User.id == user_id))
            if result.rowcount == 0:
                raise NotFoundError("user", user_id)

        self._run("delete_user", _delete)
        logger.info("Deleted user %s", user_id)


_store: Optional[SessionStore] = None


def get_store() -> SessionStore:
    global _store
    if _store is None:
        from ..core.database import SessionLocal

        _store = SessionStore(SessionLocal)
    return _store
