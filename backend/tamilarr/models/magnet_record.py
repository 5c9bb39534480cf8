"""
MagnetRecord Database Model for Tamilarr

Raw magnet URI of each indexed release, needed to submit the release to the
debrid provider.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import Session
from typing import Optional

from .base import Base


class MagnetRecord(Base):
    """Infohash to magnet URI mapping (latest write wins)."""

    __tablename__ = 'magnet_cache'

    infohash = Column(String(40), primary_key=True)
    magnet = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @classmethod
    def get_magnet(cls, db: Session, infohash: str) -> Optional[str]:
        """
        Get the magnet URI for an infohash.

        Args:
            db: SQLAlchemy database session
            infohash: Lower-case 40-hex content hash

        Returns:
            Magnet URI string, or None when unknown
        """
        record = db.query(cls).filter(cls.infohash == infohash).first()
        return record.magnet if record else None

    @classmethod
    def upsert(cls, db: Session, infohash: str, magnet: str) -> 'MagnetRecord':
        """Insert or replace the magnet for an infohash."""
        infohash = infohash.lower()
        record = db.query(cls).filter(cls.infohash == infohash).first()
        if record:
            record.magnet = magnet
            record.created_at = datetime.utcnow()
        else:
            record = cls(infohash=infohash, magnet=magnet, created_at=datetime.utcnow())
            db.add(record)

        db.commit()
        db.refresh(record)
        return record

    def __repr__(self) -> str:
        return f"<MagnetRecord(infohash='{self.infohash}')>"
