"""
Persistent store strategies.

The store is the source of truth for URL records and click analytics.
Every method is blocking and opens its own short-lived session, so callers
on the event loop run them in the threadpool and may call them concurrently.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from url_shortener.database.connection import Base, build_session_factory
from url_shortener.exceptions import ShortCodeCollision, StoreError
from url_shortener.models import URL, Analytics
from url_shortener.models.url import hash_long_url
from url_shortener.queue.models import AnalyticsEvent
from url_shortener.schemas.url import URLRecord, AnalyticsRecord

logger = structlog.get_logger()


@dataclass
class FlushReport:
    """Outcome of one committed analytics batch."""
    applied: int = 0
    skipped: int = 0


class URLStoreStrategy(ABC):
    """
    Abstract base class for the persistent store.

    The service layer, the code allocator and the analytics worker depend
    on this interface only, so tests can swap in slow or failing stores.
    """

    @abstractmethod
    def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        pass

    @abstractmethod
    def get_by_short_code(self, short_code: str) -> Optional[URLRecord]:
        pass

    @abstractmethod
    def get_by_long_url(self, long_url: str) -> Optional[URLRecord]:
        """Exact string match on the long URL."""
        pass

    @abstractmethod
    def short_code_exists(self, short_code: str) -> bool:
        pass

    @abstractmethod
    def get_or_insert(self, short_code: str, long_url: str) -> Tuple[URLRecord, bool]:
        """
        Insert a new record, or return the existing one for long_url.

        Returns:
            (record, created)

        Raises:
            ShortCodeCollision: short_code is already taken by another URL
        """
        pass

    @abstractmethod
    def get_clicks(self, short_code: str) -> Optional[int]:
        pass

    @abstractmethod
    def recent_analytics(self, short_code: str, limit: int = 1000) -> List[AnalyticsRecord]:
        """Most recent analytics rows for a code, newest first."""
        pass

    @abstractmethod
    def list_recent(self, limit: int = 50) -> List[URLRecord]:
        """Most recently created records first."""
        pass

    @abstractmethod
    def record_clicks(self, events: Sequence[AnalyticsEvent]) -> FlushReport:
        """
        Persist a batch of clicks in one transaction.

        Per-event failures skip that event only. A failed commit loses the
        whole batch and raises StoreError.
        """
        pass

    def dispose(self) -> None:
        """Release pooled connections."""
        pass


class SQLAlchemyURLStore(URLStoreStrategy):
    """
    SQLAlchemy implementation (SQLite for development and tests,
    PostgreSQL in production).
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = build_session_factory(engine)

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema ready", url=self.engine.url.render_as_string(hide_password=True))

    def get_by_short_code(self, short_code: str) -> Optional[URLRecord]:
        with self.session_factory() as session:
            url = session.query(URL).filter(URL.short_code == short_code).first()
            return URLRecord.model_validate(url) if url else None

    def get_by_long_url(self, long_url: str) -> Optional[URLRecord]:
        with self.session_factory() as session:
            url = (
                session.query(URL)
                .filter(URL.long_url_hash == hash_long_url(long_url), URL.long_url == long_url)
                .first()
            )
            return URLRecord.model_validate(url) if url else None

    def short_code_exists(self, short_code: str) -> bool:
        with self.session_factory() as session:
            return session.query(URL.id).filter(URL.short_code == short_code).first() is not None

    def get_or_insert(self, short_code: str, long_url: str) -> Tuple[URLRecord, bool]:
        with self.session_factory() as session:
            url = URL(
                short_code=short_code,
                long_url=long_url,
                long_url_hash=hash_long_url(long_url),
                clicks=0,
            )
            session.add(url)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
            else:
                return URLRecord.model_validate(url), True

        # Either a concurrent shorten of the same URL won, or the code was taken
        existing = self.get_by_long_url(long_url)
        if existing is not None:
            logger.info(
                "Concurrent shorten resolved to existing record",
                long_url=long_url,
                short_code=existing.short_code,
            )
            return existing, False

        raise ShortCodeCollision(short_code)

    def get_clicks(self, short_code: str) -> Optional[int]:
        with self.session_factory() as session:
            row = session.query(URL.clicks).filter(URL.short_code == short_code).first()
            return row[0] if row else None

    def recent_analytics(self, short_code: str, limit: int = 1000) -> List[AnalyticsRecord]:
        with self.session_factory() as session:
            rows = (
                session.query(Analytics)
                .filter(Analytics.short_code == short_code)
                .order_by(Analytics.timestamp.desc(), Analytics.id.desc())
                .limit(limit)
                .all()
            )
            return [AnalyticsRecord.model_validate(row) for row in rows]

    def list_recent(self, limit: int = 50) -> List[URLRecord]:
        with self.session_factory() as session:
            rows = (
                session.query(URL)
                .order_by(URL.created_at.desc(), URL.id.desc())
                .limit(limit)
                .all()
            )
            return [URLRecord.model_validate(row) for row in rows]

    def record_clicks(self, events: Sequence[AnalyticsEvent]) -> FlushReport:
        report = FlushReport()
        if not events:
            return report

        session = self.session_factory()
        try:
            for event in events:
                try:
                    # Savepoint per event: a failure here must not poison the batch
                    with session.begin_nested():
                        result = session.execute(
                            update(URL)
                            .where(URL.short_code == event.short_code)
                            .values(clicks=URL.clicks + 1)
                        )
                        known = result.rowcount > 0
                        if known:
                            session.execute(
                                insert(Analytics).values(
                                    short_code=event.short_code,
                                    ip_address=event.ip_address,
                                    user_agent=event.user_agent,
                                    timestamp=event.timestamp,
                                )
                            )
                except SQLAlchemyError as e:
                    report.skipped += 1
                    logger.error("Failed to record click", short_code=event.short_code, error=str(e))
                    continue

                if not known:
                    report.skipped += 1
                    logger.warning("Click for unknown short code skipped", short_code=event.short_code)
                    continue

                report.applied += 1

            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"analytics batch commit failed: {e}") from e
        finally:
            session.close()

        return report

    def dispose(self) -> None:
        self.engine.dispose()
