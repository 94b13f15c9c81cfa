"""
Sample store: an append-only time series of probe results.
"""

import threading
from collections.abc import Iterable

from sqlalchemy import BigInteger, Integer, String, create_engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from statuskeeper.core import ServiceSample, StorageError
from statuskeeper.logging_config import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class SampleRecord(Base):
    __tablename__ = "service_samples"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String(2048), index=True)
    status: Mapped[str] = mapped_column(String(16))
    response_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, index=True)

    def to_sample(self) -> ServiceSample:
        return ServiceSample(
            url=self.url,
            status=self.status,
            response_time=self.response_time,
            timestamp=self.timestamp,
        )


def _create_engine(database_url: str):
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


class SampleStore:
    """
    SQL-backed sample history.

    Appends never raise: a failed write is logged and reported through the
    return value. Queries raise ``StorageError`` so callers can decide how to
    degrade.
    """

    def __init__(self, database_url: str = "sqlite://") -> None:
        self.database_url = database_url
        self.engine = _create_engine(database_url)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)
        self._write_lock = threading.Lock()
        Base.metadata.create_all(self.engine)

    def append(self, sample: ServiceSample) -> bool:
        """Record one sample. Returns False if it could not be written."""
        with self._write_lock:
            try:
                with self._session_factory.begin() as session:
                    session.add(self._to_record(sample))
                return True
            except SQLAlchemyError:
                logger.error("Failed to record sample for %s", sample.url, exc_info=True)
                return False

    def append_batch(self, samples: Iterable[ServiceSample]) -> int:
        """
        Record a batch of samples in one transaction.

        If the transaction fails, each sample is retried on its own so one
        bad row does not drop the rest of the batch.

        Returns:
            Number of samples written
        """
        samples = list(samples)
        if not samples:
            return 0

        with self._write_lock:
            try:
                with self._session_factory.begin() as session:
                    session.add_all([self._to_record(s) for s in samples])
                return len(samples)
            except SQLAlchemyError:
                logger.warning(
                    "Batch write of %s sample(s) failed, retrying individually",
                    len(samples),
                    exc_info=True
                )

        return sum(1 for sample in samples if self.append(sample))

    def query_range(
        self,
        url: str | None = None,
        since: int = 0,
        until: int | None = None
    ) -> list[ServiceSample]:
        """
        Return samples with ``since <= timestamp`` (and ``<= until``), oldest first.

        Args:
            url: Restrict to one target; None returns every target's rows
            since: Inclusive lower bound in milliseconds since epoch
            until: Optional inclusive upper bound
        """
        stmt = select(SampleRecord).where(SampleRecord.timestamp >= since)
        if url is not None:
            stmt = stmt.where(SampleRecord.url == url)
        if until is not None:
            stmt = stmt.where(SampleRecord.timestamp <= until)
        stmt = stmt.order_by(SampleRecord.timestamp, SampleRecord.id)

        try:
            with self._session_factory() as session:
                return [record.to_sample() for record in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise StorageError(f"Sample query failed: {e}") from e

    def latest(self, url: str, limit: int) -> list[ServiceSample]:
        """Return up to ``limit`` most recent samples for a target, newest first."""
        stmt = (
            select(SampleRecord)
            .where(SampleRecord.url == url)
            .order_by(SampleRecord.timestamp.desc(), SampleRecord.id.desc())
            .limit(limit)
        )
        try:
            with self._session_factory() as session:
                return [record.to_sample() for record in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise StorageError(f"Latest sample query failed: {e}") from e

    def prune_older_than(self, cutoff: int) -> int:
        """
        Delete every sample with ``timestamp < cutoff``.

        Returns:
            Number of samples removed
        """
        with self._write_lock:
            try:
                with self._session_factory.begin() as session:
                    result = session.execute(
                        delete(SampleRecord).where(SampleRecord.timestamp < cutoff)
                    )
                    return result.rowcount or 0
            except SQLAlchemyError as e:
                raise StorageError(f"Pruning samples failed: {e}") from e

    def count(self, url: str | None = None) -> int:
        """Number of stored samples, optionally for one target."""
        stmt = select(func.count(SampleRecord.id))
        if url is not None:
            stmt = stmt.where(SampleRecord.url == url)
        try:
            with self._session_factory() as session:
                return session.scalar(stmt) or 0
        except SQLAlchemyError as e:
            raise StorageError(f"Sample count failed: {e}") from e

    def close(self) -> None:
        """Release database connections."""
        self.engine.dispose()

    @staticmethod
    def _to_record(sample: ServiceSample) -> SampleRecord:
        return SampleRecord(
            url=sample.url,
            status=sample.status,
            response_time=sample.response_time,
            timestamp=sample.timestamp,
        )
