from sqlalchemy import Column, Integer, Text

from ..core.database import Base


class Room(Base):
    __tablename__ = "rooms"
    # ids are never handed out twice, even after a delete
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    host = Column(Text, nullable=False)
    token = Column(Text, nullable=False)

    def __repr__(self):
        return f"<Room id={self.id} host={self.host!r}>"
