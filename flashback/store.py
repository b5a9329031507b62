# flashback/store.py
"""
Compressed message archive with a full-text index kept in lockstep.

Every row of the `messages` table holds a zlib-compressed body and has
exactly one entry in the FTS5 table `messages_idx`, sharing its rowid.
Both are written inside the same transaction by `append`, so a batch is
either archived and indexed completely or not at all.
"""
import logging
import threading
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, select, text
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from . import codec
from .database import Base, make_engine, make_session_factory
from .errors import QueryError, SchemaVersionError, StoreError, StoreInitError
from .models import INDEX_DDL, INDEX_TABLE, ArchivedMessage, SchemaVersion
from .schemas import Message

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_INSERT_INDEX = text(
    f"INSERT INTO {INDEX_TABLE} (rowid, sender, channel, send_time, body) "
    "VALUES (:rowid, :sender, :channel, :send_time, :body)"
)

_SEARCH = text(
    f"SELECT sender, channel, send_time, body FROM {INDEX_TABLE} "
    f"WHERE {INDEX_TABLE} MATCH :query AND channel = :channel "
    "AND (:sender = '' OR sender = :sender) "
    "ORDER BY rank"
)


class MessageStore:
    def __init__(self, database_url: str, schema_version: int = SCHEMA_VERSION):
        self.database_url = database_url
        self.schema_version = schema_version
        self.engine = None
        self.SessionLocal = None
        self._init_error: Optional[Exception] = StoreInitError("Store has not been opened")
        self._lock = threading.RLock()

    def open(self) -> None:
        """
        Opens the database, verifies or seeds the schema version marker and
        creates the tables and index. A failure is cached and returned by
        every later operation instead of being retried.
        """
        with self._lock:
            try:
                self.engine = make_engine(self.database_url)
                self.SessionLocal = make_session_factory(self.engine)
                SchemaVersion.__table__.create(bind=self.engine, checkfirst=True)
                self._check_schema_version()
                Base.metadata.create_all(bind=self.engine)
                with self.engine.begin() as conn:
                    conn.execute(text(INDEX_DDL))
                self._init_error = None
                logger.info(f"Message store ready at {self.database_url}")
            except StoreInitError as e:
                logger.error(f"Message store not ready: {e}")
                self._init_error = e
            except SQLAlchemyError as e:
                logger.error(f"Error opening message store: {e}")
                self._init_error = StoreInitError(str(e))

    def close(self) -> None:
        with self._lock:
            if self.engine is not None:
                self.engine.dispose()
                self.engine = None
            self._init_error = StoreInitError("Store is closed")

    def is_ready(self) -> Tuple[bool, Optional[Exception]]:
        return self._init_error is None, self._init_error

    def _ensure_ready(self):
        if self._init_error is not None:
            raise self._init_error

    def _check_schema_version(self):
        with self.SessionLocal() as db:
            stored = db.scalar(select(func.max(SchemaVersion.version)))
            if stored is None:
                db.add(SchemaVersion(version=self.schema_version))
                db.commit()
                logger.info(f"Seeded schema version {self.schema_version}")
                return
            if stored != self.schema_version:
                raise SchemaVersionError(stored, self.schema_version)

    def append(self, messages: Sequence[Message]) -> int:
        """
        Archives a batch in one transaction and returns how many messages
        were new. A message whose (send_time, channel) is already stored is
        skipped; any other failure rolls the whole batch back.
        """
        self._ensure_ready()
        added = 0
        with self._lock, self.SessionLocal() as db:
            try:
                for msg in messages:
                    stmt = (
                        insert(ArchivedMessage.__table__)
                        .values(
                            sender=msg.sender,
                            channel=msg.channel,
                            send_time=msg.send_time,
                            body=codec.compress(msg.body),
                        )
                        .on_conflict_do_nothing(index_elements=["send_time", "channel"])
                    )
                    result = db.execute(stmt)
                    if result.rowcount == 0:
                        logger.debug(f"Message {msg.send_time} in {msg.channel} already archived")
                        continue
                    db.execute(_INSERT_INDEX, {
                        "rowid": result.lastrowid,
                        "sender": msg.sender,
                        "channel": msg.channel,
                        "send_time": msg.send_time,
                        "body": msg.body,
                    })
                    added += 1
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"Could not archive messages: {e}") from e
        return added

    def search(self, channel: str, query: str, sender: Optional[str] = None) -> List[Message]:
        """Full-text search within one channel, optionally one sender, best match first."""
        self._ensure_ready()
        params = {"query": query, "channel": channel, "sender": sender or ""}
        with self._lock, self.SessionLocal() as db:
            try:
                rows = db.execute(_SEARCH, params).all()
            except OperationalError as e:
                # fts5 reports malformed MATCH expressions as operational errors
                raise QueryError(f"Invalid search query {query!r}: {e.orig}") from e
            except SQLAlchemyError as e:
                raise StoreError(str(e)) from e
        return [
            Message(sender=r.sender, channel=r.channel, send_time=r.send_time, body=r.body)
            for r in rows
        ]

    def latest_timestamp(self, channel: str) -> Optional[str]:
        """Newest send_time archived for the channel, or None if it has no messages."""
        self._ensure_ready()
        with self._lock, self.SessionLocal() as db:
            try:
                return db.scalar(
                    select(func.max(ArchivedMessage.send_time)).where(ArchivedMessage.channel == channel)
                )
            except SQLAlchemyError as e:
                raise StoreError(str(e)) from e

    def count(self, channel: Optional[str] = None) -> int:
        self._ensure_ready()
        stmt = select(func.count()).select_from(ArchivedMessage)
        if channel is not None:
            stmt = stmt.where(ArchivedMessage.channel == channel)
        with self._lock, self.SessionLocal() as db:
            return db.scalar(stmt)

    def index_size(self) -> int:
        self._ensure_ready()
        with self._lock, self.SessionLocal() as db:
            return db.scalar(text(f"SELECT COUNT(*) FROM {INDEX_TABLE}"))

    def rebuild_index(self) -> int:
        """Drops every index entry and re-creates one per stored message."""
        self._ensure_ready()
        with self._lock, self.SessionLocal() as db:
            try:
                db.execute(text(f"DELETE FROM {INDEX_TABLE}"))
                rows = db.execute(text(
                    "SELECT rowid, sender, channel, send_time, body FROM messages"
                )).all()
                for row in rows:
                    db.execute(_INSERT_INDEX, {
                        "rowid": row.rowid,
                        "sender": row.sender,
                        "channel": row.channel,
                        "send_time": row.send_time,
                        "body": codec.decompress(row.body),
                    })
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"Could not rebuild index: {e}") from e
        logger.info(f"Rebuilt full-text index with {len(rows)} entries")
        return len(rows)
