# flashback/models.py
from sqlalchemy import Column, Integer, String, LargeBinary, PrimaryKeyConstraint
from .database import Base

INDEX_TABLE = "messages_idx"

# Full-text index over decompressed bodies; rowid mirrors messages.rowid
INDEX_DDL = (
    f"CREATE VIRTUAL TABLE IF NOT EXISTS {INDEX_TABLE} USING fts5("
    "sender UNINDEXED, channel UNINDEXED, send_time UNINDEXED, body)"
)


class ArchivedMessage(Base):
    __tablename__ = "messages"
    sender = Column(String, nullable=False)
    channel = Column(String, nullable=False)
    send_time = Column(String, nullable=False)
    body = Column(LargeBinary)

    __table_args__ = (PrimaryKeyConstraint("send_time", "channel"),)


class SchemaVersion(Base):
    __tablename__ = "versions"
    version = Column(Integer, primary_key=True)
