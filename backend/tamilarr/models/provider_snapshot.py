"""
ProviderSnapshot Database Model for Tamilarr

Last known state of a release on the debrid provider: the provider job id,
its status, and the file/link lists reported by the provider.

Parallel arrays:
    ``links[i]`` is the download link of the i-th *selected* entry of
    ``files``. The two lists are stored exactly as the provider returns them
    and must never be filtered independently.

Write Pattern:
    One upsert per provider round-trip, keyed by infohash. A later resolve
    call (even after an earlier one timed out) starts from this cached
    progress.
"""

from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any

from .base import Base


class ProviderStatus(str, Enum):
    """Torrent status values reported by the debrid provider."""
    QUEUED = "queued"
    MAGNET_CONVERSION = "magnet_conversion"
    WAITING_FILES_SELECTION = "waiting_files_selection"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    ERROR = "error"
    MAGNET_ERROR = "magnet_error"


TERMINAL_FAILURE_STATUSES = frozenset({ProviderStatus.ERROR.value, ProviderStatus.MAGNET_ERROR.value})


class ProviderSnapshot(Base):
    """
    Database model caching the provider state of one release.

    Table Structure:
        - infohash: Release fingerprint (primary key)
        - rd_id: Provider job id
        - status: Provider status string (see ProviderStatus)
        - files: JSON list of {id, path, bytes, selected}
        - links: JSON list of hoster links aligned with selected files
        - last_checked: Timestamp of the last provider round-trip
    """

    __tablename__ = 'rd_torrents'

    infohash = Column(String(40), primary_key=True)
    rd_id = Column(String(64), nullable=False, index=True)
    status = Column(String(40), nullable=False)
    files = Column(JSON, nullable=True)
    links = Column(JSON, nullable=True)
    last_checked = Column(DateTime, nullable=False, default=datetime.utcnow)

    def is_ready(self) -> bool:
        """Downloaded with both file and link lists populated."""
        return (
            self.status == ProviderStatus.DOWNLOADED.value
            and bool(self.files)
            and bool(self.links)
        )

    def is_terminal_failure(self) -> bool:
        return self.status in TERMINAL_FAILURE_STATUSES

    @classmethod
    def get(cls, db: Session, infohash: str, refresh: bool = False) -> Optional['ProviderSnapshot']:
        """
        Get the cached snapshot of a release.

        Args:
            db: SQLAlchemy database session
            infohash: Release fingerprint
            refresh: Reload column values from the database even if the row
                is already in the session (picks up writes made by
                concurrent requests)

        Returns:
            ProviderSnapshot if the release was ever submitted, None otherwise
        """
        query = db.query(cls)
        if refresh:
            query = query.populate_existing()
        return query.filter(cls.infohash == infohash).first()

    @classmethod
    def upsert(
        cls,
        db: Session,
        infohash: str,
        rd_id: str,
        status: str,
        files: Optional[List[Dict[str, Any]]] = None,
        links: Optional[List[str]] = None
    ) -> 'ProviderSnapshot':
        """
        Insert or overwrite the snapshot of a release.

        Args:
            db: SQLAlchemy database session
            infohash: Release fingerprint
            rd_id: Provider job id
            status: Provider status
            files: Provider file list
            links: Provider link list (aligned with selected files)

        Returns:
            ProviderSnapshot (new or updated)
        """
        snapshot = db.query(cls).filter(cls.infohash == infohash).first()

        if snapshot:
            snapshot.rd_id = rd_id
            snapshot.status = status
            snapshot.files = files
            snapshot.links = links
            snapshot.last_checked = datetime.utcnow()
        else:
            snapshot = cls(
                infohash=infohash,
                rd_id=rd_id,
                status=status,
                files=files,
                links=links,
                last_checked=datetime.utcnow()
            )
            db.add(snapshot)

        db.commit()
        db.refresh(snapshot)
        return snapshot

    @classmethod
    def record_info(cls, db: Session, infohash: str, rd_id: str, info: Dict[str, Any]) -> 'ProviderSnapshot':
        """Persist a provider torrent-info payload."""
        return cls.upsert(
            db,
            infohash,
            rd_id=str(info.get('id') or rd_id),
            status=info.get('status') or 'unknown',
            files=info.get('files'),
            links=info.get('links'),
        )

    def __repr__(self) -> str:
        return f"<ProviderSnapshot(infohash='{self.infohash}', rd_id='{self.rd_id}', status='{self.status}')>"
