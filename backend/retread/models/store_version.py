from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from retread.db import Base


class StoreVersion(Base):
    __tablename__ = "store_versions"
    id = Column(Integer, primary_key=True)
    # bumped by every whole-collection save
    version = Column(Integer, nullable=False, default=0)
    # version last sent to the remote sheet
    pushed_version = Column(Integer, nullable=False, default=0)
    source = Column(String(32), nullable=True)  # local, pull, import
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
