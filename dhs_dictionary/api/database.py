"""
SQL storage backend for the DHS data dictionary.

Every collection shares a single ``documents`` table: a row holds the collection name,
the document key and the document body as JSON (JSONB on PostgreSQL). The term global
identifier is copied into an indexed column so descriptors and terms can be fetched by
global identifier without scanning bodies. Descriptor keys come from the ``counters``
table.

Note: the schema is created with ``metadata.create_all``; for managed PostgreSQL
deployments integrate Alembic migrations instead.
"""

import os
import uuid
import logging
from datetime import datetime
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from sqlalchemy import (
    create_engine, Column, String, Integer, DateTime, UniqueConstraint, Index, JSON, text
)
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from dhs_dictionary.api.collections import KEY, DocumentCollection, DocumentServer
from dhs_dictionary.exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///dhs_dictionary.db"
DESCRIPTOR_COUNTER = "descriptors"

Base = declarative_base()

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


# --- ORM Models ---

class DocumentRecord(Base):
    __tablename__ = "documents"
    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(64), nullable=False)
    key = Column(String(255), nullable=False)
    gid = Column(String(255))
    body = Column(JSONDocument, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('collection', 'key', name='uq_document_key'),
        Index('ix_document_collection_gid', 'collection', 'gid'),
    )

    def __repr__(self):
        return f"<DocumentRecord(collection={self.collection}, key={self.key})>"


class Counter(Base):
    __tablename__ = "counters"
    name = Column(String(64), primary_key=True)
    value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Counter(name={self.name}, value={self.value})>"


# --- Engine & Sessions ---

def create_db_engine(database_url: Optional[str] = None):
    """Create the SQLAlchemy engine, falling back to DATABASE_URL and then SQLite."""
    load_dotenv()
    url = database_url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
    if url.startswith("sqlite") and ":memory:" in url:
        # A single shared connection, otherwise every session sees an empty database.
        return create_engine(
            url, echo=False, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    return create_engine(url, echo=False)


def check_connection(engine) -> bool:
    """Return True if a trivial query succeeds on ``engine``."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False


class SQLDocumentCollection(DocumentCollection):

    def __init__(self, name: str, server: "SQLDocumentServer"):
        super().__init__(name)
        self.server = server

    def insert(self, document: Dict[str, Any]) -> str:
        key = document.get(KEY) or uuid.uuid4().hex
        body = dict(document)
        body[KEY] = key
        record = DocumentRecord(collection=self.name, key=key, gid=body.get('gid'), body=body)
        try:
            with self.server.get_db() as db:
                db.add(record)
                db.commit()
        except IntegrityError as e:
            raise StorageError(
                f"Duplicate key [{key}] in collection [{self.name}]",
                details={'collection': self.name, 'key': key},
            ) from e
        return key

    def update(self, key: str, document: Dict[str, Any]) -> None:
        body = dict(document)
        body[KEY] = key
        with self.server.get_db() as db:
            record = self._record(db, key)
            if record is None:
                raise StorageError(
                    f"Cannot update missing document [{key}] in collection [{self.name}]",
                    details={'collection': self.name, 'key': key},
                )
            record.body = body
            record.gid = body.get('gid')
            db.commit()

    def _record(self, db: Session, key: str) -> Optional[DocumentRecord]:
        return (
            db.query(DocumentRecord)
            .filter(DocumentRecord.collection == self.name, DocumentRecord.key == key)
            .one_or_none()
        )

    def _get(self, key: str) -> Optional[Dict[str, Any]]:
        with self.server.get_db() as db:
            record = self._record(db, key)
            return dict(record.body) if record is not None else None

    def find_by_example(self, example: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self.server.get_db() as db:
            query = db.query(DocumentRecord).filter(DocumentRecord.collection == self.name)
            if 'gid' in example:
                query = query.filter(DocumentRecord.gid == example['gid'])
            bodies = [dict(record.body) for record in query.order_by(DocumentRecord.id).all()]
        return [b for b in bodies if all(b.get(k) == v for k, v in example.items())]

    def count(self) -> int:
        with self.server.get_db() as db:
            return db.query(DocumentRecord).filter(DocumentRecord.collection == self.name).count()

    def truncate(self) -> None:
        with self.server.get_db() as db:
            db.query(DocumentRecord).filter(DocumentRecord.collection == self.name).delete()
            db.commit()


class SQLDocumentServer(DocumentServer):
    """Document server on top of any SQLAlchemy-supported database."""

    def __init__(self, database_url: Optional[str] = None, engine=None):
        self.engine = engine if engine is not None else create_db_engine(database_url)
        if not check_connection(self.engine):
            raise StorageError(
                f"Unable to connect to database {self.engine.url}",
                details={"url": str(self.engine.url)},
            )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        Base.metadata.create_all(self.engine)
        self._collections: Dict[str, SQLDocumentCollection] = {}

    @contextmanager
    def get_db(self) -> Session:
        db = self.SessionLocal()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error: {str(e)}")
            raise
        finally:
            db.close()

    def collection(self, name: str) -> SQLDocumentCollection:
        if name not in self._collections:
            self._collections[name] = SQLDocumentCollection(name, self)
        return self._collections[name]

    def new_descriptor_key(self) -> str:
        with self.get_db() as db:
            counter = db.get(Counter, DESCRIPTOR_COUNTER)
            if counter is None:
                counter = Counter(name=DESCRIPTOR_COUNTER, value=0)
                db.add(counter)
            counter.value += 1
            value = counter.value
            db.commit()
        return f"@{value:x}"

    def drop(self) -> None:
        logger.info(f"Dropping database tables on {self.engine.url}")
        Base.metadata.drop_all(self.engine)
        Base.metadata.create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()
