"""
ResolutionLock Database Model for Tamilarr

Single-flight marker for debrid resolution. A row means a resolution was or is
being attempted for the release; only its absence allows a new add-magnet call
to the provider.

The lock is checked and written non-atomically (read, then upsert). Two
first-time requests racing on the same infohash can both submit the magnet;
the provider returns the existing torrent for an identical magnet, so the
race costs at most one redundant call. A provider without that guarantee
needs an insert-if-absent here instead.
"""

from datetime import datetime, timedelta
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import Session
from typing import Optional

from .base import Base


class ResolutionLock(Base):
    """Per-infohash resolution lock."""

    __tablename__ = 'rd_cache_locks'

    infohash = Column(String(40), primary_key=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def is_stale(self, max_age_seconds: int, now: Optional[datetime] = None) -> bool:
        """
        Check whether the lock is older than ``max_age_seconds``.

        Callers only treat a lock as abandoned when it is stale *and* no
        provider job id was ever recorded for the release.
        """
        now = now or datetime.utcnow()
        return now - self.created_at >= timedelta(seconds=max_age_seconds)

    @classmethod
    def get(cls, db: Session, infohash: str) -> Optional['ResolutionLock']:
        return db.query(cls).filter(cls.infohash == infohash).first()

    @classmethod
    def acquire(cls, db: Session, infohash: str) -> 'ResolutionLock':
        """
        Write (or refresh) the lock for an infohash.

        Args:
            db: SQLAlchemy database session
            infohash: Release fingerprint

        Returns:
            The lock row
        """
        lock = db.query(cls).filter(cls.infohash == infohash).first()
        if lock:
            lock.created_at = datetime.utcnow()
        else:
            lock = cls(infohash=infohash, created_at=datetime.utcnow())
            db.add(lock)

        db.commit()
        db.refresh(lock)
        return lock

    def __repr__(self) -> str:
        return f"<ResolutionLock(infohash='{self.infohash}', created_at={self.created_at})>"
