from sqlalchemy import Column, String, Integer, DateTime, JSON, CheckConstraint, Index
from sqlalchemy.orm import synonym
from datetime import datetime, timezone
from database import Base


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ProfileAggregateRecord(Base):
    """
    Stored profile document: one row per user.

    Sections are JSON lists of item property bags. Column names match the
    document field names (favoriteSpots, activeStatus).

    version is incremented by every write; conditional writes compare it to
    detect lost updates.
    """
    __tablename__ = 'manage_data'

    user_id = Column(String, primary_key=True)
    vehicles = Column('vehicles', JSON, nullable=False, default=list)
    favorite_spots = Column('favoriteSpots', JSON, nullable=False, default=list)
    history = Column('history', JSON, nullable=False, default=list)
    active_status = Column('activeStatus', JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)
    version = Column(Integer, nullable=False, default=1)

    # BaseRepository addresses records through `id`
    id = synonym('user_id')

    __table_args__ = (
        CheckConstraint("user_id != ''"),
        Index('idx_manage_data_updated_at', 'updated_at'),
    )

    def to_document(self) -> dict:
        """Document view of the row, keyed by stored field names."""
        return {
            'user_id': self.user_id,
            'vehicles': list(self.vehicles or []),
            'favoriteSpots': list(self.favorite_spots or []),
            'history': list(self.history or []),
            'activeStatus': list(self.active_status or []),
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'version': self.version,
        }
