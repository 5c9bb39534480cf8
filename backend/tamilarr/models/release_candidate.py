"""
ReleaseCandidate Database Model for Tamilarr

A known playable variant of a title, keyed by the torrent infohash. Rows are
written by the ingestion pipeline and are read-only for stream listing and
debrid resolution.

Episode model:
    - Movie:          season=None, episode=None, episode_end=None
    - Single episode: episode == episode_end
    - Episode pack:   episode < episode_end
    - Season pack:    episode=1, episode_end=999 (sentinel)
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.orm import Session
from typing import Optional, List

from .base import Base

SEASON_PACK_START = 1
SEASON_PACK_END = 999


class ReleaseCandidate(Base):
    """
    Database model for a release of a movie or series.

    Table Structure:
        - id: Primary key (auto-increment)
        - tmdb_id: Canonical identity the release belongs to
        - season: Season number (None for movies)
        - episode: First episode covered (None for movies)
        - episode_end: Last episode covered (None for movies)
        - infohash: 40-hex lower-case content hash (unique)
        - quality: Resolution label such as "1080p"
        - language: Audio language label such as "Tamil"
    """

    __tablename__ = 'streams'

    id = Column(Integer, primary_key=True, autoincrement=True)
    tmdb_id = Column(String(50), nullable=False, index=True)
    season = Column(Integer, nullable=True, index=True)
    episode = Column(Integer, nullable=True, index=True)
    episode_end = Column(Integer, nullable=True)
    infohash = Column(String(40), nullable=False, unique=True)
    quality = Column(String(20), nullable=True, index=True)
    language = Column(String(50), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_series(self) -> bool:
        """A release with a season number belongs to a series."""
        return self.season is not None

    @classmethod
    def find_by_infohash(cls, db: Session, infohash: str) -> Optional['ReleaseCandidate']:
        """
        Get a release by its infohash.

        Args:
            db: SQLAlchemy database session
            infohash: Lower-case 40-hex content hash

        Returns:
            ReleaseCandidate if indexed, None otherwise
        """
        return db.query(cls).filter(cls.infohash == infohash).first()

    @classmethod
    def for_movie(cls, db: Session, tmdb_id: str) -> List['ReleaseCandidate']:
        """Get all movie releases of an identity."""
        return db.query(cls).filter(
            cls.tmdb_id == tmdb_id,
            cls.season.is_(None),
            cls.episode.is_(None),
        ).order_by(cls.id).all()

    @classmethod
    def for_episode(
        cls,
        db: Session,
        tmdb_id: str,
        season: int,
        episode: int
    ) -> List['ReleaseCandidate']:
        """
        Get all releases of a series that contain the requested episode.

        Single episodes, episode packs and season packs all match as long as
        ``episode <= requested <= episode_end``.
        """
        return db.query(cls).filter(
            cls.tmdb_id == tmdb_id,
            cls.season == season,
            cls.episode <= episode,
            cls.episode_end >= episode,
        ).order_by(cls.id).all()

    def __repr__(self) -> str:
        return (
            f"<ReleaseCandidate(infohash='{self.infohash}', tmdb_id='{self.tmdb_id}', "
            f"season={self.season}, episode={self.episode}-{self.episode_end})>"
        )


Index('idx_streams_identity_episode', ReleaseCandidate.tmdb_id, ReleaseCandidate.season, ReleaseCandidate.episode)
