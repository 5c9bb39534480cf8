"""
MediaIdentity Database Model for Tamilarr

Canonical identity of a movie or series as resolved by the metadata matcher
(TMDB). Releases point at an identity through ``tmdb_id``; the media-center
client addresses identities by their IMDb id.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON, select
from sqlalchemy.orm import Session
from typing import Optional, List

from .base import Base
from .release_candidate import ReleaseCandidate

TMDB_POSTER_BASE = "https://image.tmdb.org/t/p/w500"


class MediaIdentity(Base):
    """
    Database model for a canonical media identity.

    Table Structure:
        - tmdb_id: TMDB movie/TV show ID (primary key)
        - imdb_id: IMDb ID used by the client (unique)
        - media_type: "movie" or "series"
        - title: Display title
        - year: Release/first air year
        - data: Raw metadata payload (poster path, overview, ...)
    """

    __tablename__ = 'tmdb_metadata'

    tmdb_id = Column(String(50), primary_key=True)
    imdb_id = Column(String(20), nullable=True, unique=True, index=True)
    media_type = Column(String(10), nullable=False, default='movie')
    title = Column(String(500), nullable=False)
    year = Column(Integer, nullable=True, index=True)

    # Note: 'metadata' is reserved by SQLAlchemy, so we use 'data'
    data = Column(JSON, nullable=True, default=dict)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_series(self) -> bool:
        return self.media_type == 'series'

    @property
    def poster(self) -> Optional[str]:
        """TMDB poster URL built from ``data['poster_path']``, if any."""
        poster_path = (self.data or {}).get('poster_path')
        return f"{TMDB_POSTER_BASE}{poster_path}" if poster_path else None

    @classmethod
    def with_releases(cls, db: Session, media_type: str, limit: int = 100) -> List['MediaIdentity']:
        """
        Identities of one type that have at least one indexed release.

        Args:
            db: SQLAlchemy database session
            media_type: "movie" or "series"
            limit: Maximum number of identities, most recently updated first

        Returns:
            List of MediaIdentity with an IMDb id
        """
        indexed = select(ReleaseCandidate.tmdb_id).distinct()
        return (
            db.query(cls)
            .filter(cls.media_type == media_type, cls.imdb_id.isnot(None), cls.tmdb_id.in_(indexed))
            .order_by(cls.updated_at.desc())
            .limit(limit)
            .all()
        )

    @classmethod
    def find_by_imdb_id(cls, db: Session, imdb_id: str) -> Optional['MediaIdentity']:
        """
        Get an identity by its IMDb id.

        Args:
            db: SQLAlchemy database session
            imdb_id: IMDb id such as "tt1234567"

        Returns:
            MediaIdentity if known, None otherwise
        """
        return db.query(cls).filter(cls.imdb_id == imdb_id).first()

    def __repr__(self) -> str:
        return f"<MediaIdentity(tmdb_id='{self.tmdb_id}', imdb_id='{self.imdb_id}', title='{self.title}')>"
