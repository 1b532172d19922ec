import uuid

from sqlalchemy import Column, Text, Uuid

from ..core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Not unique: two users may share a display name.
    username = Column(Text, nullable=False)
    token = Column(Text, nullable=False)

    def __repr__(self):
        return f"<User id={self.id} username={self.username!r}>"
