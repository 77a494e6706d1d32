"""Persistent store for performances and change-aware reconciliation.

The crawl revisits every upstream record daily, so ``Reconciler`` only
writes when something actually changed; ``updated_at`` therefore tells
when the upstream data last moved, not when we last looked at it.
"""

import enum
import logging
import os
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import Column, Date, DateTime, Float, String, Text, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import EnrichedRecord

LOGGER = logging.getLogger(__name__)

Base = declarative_base()

# every persisted attribute except the primary key and updated_at
RECONCILED_FIELDS = (
    "source",
    "type",
    "title",
    "start_date",
    "end_date",
    "time_info",
    "place_name",
    "latitude",
    "longitude",
    "price",
    "poster_url",
    "genre",
    "status",
    "description",
    "ticket_link",
)


class Performance(Base):
    __tablename__ = "performances"

    id = Column(String(32), primary_key=True)  # source-assigned identifier
    source = Column(String(32), nullable=False)
    type = Column(String(32), nullable=False)
    title = Column(String(512), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    time_info = Column(Text, nullable=True)
    place_name = Column(String(512), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    price = Column(Text, nullable=True)
    poster_url = Column(Text, nullable=True)
    genre = Column(String(128), nullable=True)
    status = Column(String(64), nullable=True)
    description = Column(Text, nullable=True)
    ticket_link = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"id": self.id}
        for name in RECONCILED_FIELDS:
            d[name] = getattr(self, name)
        d["updated_at"] = self.updated_at
        return d


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PerformanceStore:
    """Engine and session factory for the performances table."""

    def __init__(self, database_url: str):
        url = make_url(database_url)
        kwargs: Dict[str, Any] = {}
        if url.get_backend_name() == "sqlite":
            # background collection runs on a worker thread
            kwargs["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                kwargs["poolclass"] = StaticPool
            else:
                os.makedirs(os.path.dirname(os.path.abspath(url.database)), exist_ok=True)
        self.engine = create_engine(database_url, **kwargs)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, performance_id: str) -> Optional[Performance]:
        with self.session() as session:
            return session.get(Performance, performance_id)

    def all(self) -> List[Performance]:
        with self.session() as session:
            return session.query(Performance).order_by(Performance.start_date).all()


class ReconcileOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def entity_values(record: EnrichedRecord) -> Dict[str, Any]:
    return {name: getattr(record, name) for name in RECONCILED_FIELDS}


def changed_fields(existing: Performance, values: Dict[str, Any]) -> List[str]:
    """Names of attributes whose stored value differs from the candidate."""
    return [name for name in RECONCILED_FIELDS if getattr(existing, name) != values[name]]


class Reconciler:
    def __init__(self, store: PerformanceStore, clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self.clock = clock

    def _timestamp_after(self, previous: Optional[datetime]) -> datetime:
        now = self.clock()
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

    def reconcile(
        self,
        performance_id: str,
        enriched: EnrichedRecord,
        keep_existing: Sequence[str] = (),
    ) -> ReconcileOutcome:
        """Create, overwrite or leave alone the stored entity for ``performance_id``.

        Fields named in ``keep_existing`` could not be resolved this time;
        an existing row keeps its stored values for them.
        """
        values = entity_values(enriched)
        with self.store.session() as session:
            existing = session.get(Performance, performance_id)
            if existing is not None:
                for name in keep_existing:
                    values[name] = getattr(existing, name)

            if existing is None:
                session.add(
                    Performance(id=performance_id, updated_at=self._timestamp_after(None), **values)
                )
                session.commit()
                LOGGER.info("[new] %s %s", performance_id, enriched.title)
                return ReconcileOutcome.CREATED

            diff = changed_fields(existing, values)
            if not diff:
                LOGGER.debug("[unchanged] %s %s", performance_id, enriched.title)
                return ReconcileOutcome.UNCHANGED

            for name, value in values.items():
                setattr(existing, name, value)
            existing.updated_at = self._timestamp_after(existing.updated_at)
            session.commit()
            LOGGER.info("[update] %s %s (changed: %s)", performance_id, enriched.title, ", ".join(diff))
            return ReconcileOutcome.UPDATED
