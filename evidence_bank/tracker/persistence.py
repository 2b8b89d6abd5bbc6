"""
Blob stores for the application state.

The core treats persistence as opaque: a store exposes ``load()``
returning a State (or None when nothing was saved yet) and ``save(state)``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from evidence_bank.tracker.state import State, dumps_state

logger = logging.getLogger(__name__)

DEFAULT_KEY = "evidence-bank-state"


class Base(DeclarativeBase):
    pass


class StateBlob(Base):
    """One serialized State, stored under a key."""

    __tablename__ = "state_blobs"

    key = Column(String(128), primary_key=True)
    payload = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<StateBlob(key='{self.key}', updated_at={self.updated_at})>"


class StateDB:
    """
    Key-value blob store backed by SQLAlchemy.

    Usage:
        db = StateDB("sqlite:///evidence_bank.db")
        state = db.load() or State()
        db.save(state)
    """

    def __init__(self, db_url: str = "sqlite:///evidence_bank.db", key: str = DEFAULT_KEY) -> None:
        self.key = key
        self.engine = create_engine(db_url, echo=False)
        Base.metadata.create_all(self.engine)
        self.SessionFactory = sessionmaker(bind=self.engine)

    def _session(self) -> Session:
        return self.SessionFactory()

    def load(self) -> Optional[State]:
        with self._session() as session:
            blob = session.get(StateBlob, self.key)
            if blob is None:
                return None
            return State.from_dict(json.loads(blob.payload))

    def save(self, state: State) -> None:
        with self._session() as session:
            blob = session.get(StateBlob, self.key)
            if blob is None:
                blob = StateBlob(key=self.key, payload="")
                session.add(blob)
            blob.payload = dumps_state(state)
            blob.updated_at = datetime.utcnow()
            session.commit()
        logger.debug("Saved state under key %s", self.key)

    def clear(self) -> bool:
        with self._session() as session:
            blob = session.get(StateBlob, self.key)
            if blob is None:
                return False
            session.delete(blob)
            session.commit()
            return True


class JsonFileStateStore:
    """Blob store that keeps the state in a single JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[State]:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return State.from_dict(json.load(f))

    def save(self, state: State) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(dumps_state(state), encoding="utf-8")
