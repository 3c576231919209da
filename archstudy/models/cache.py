from sqlalchemy import Column, String, Text
from archstudy.models.base import Base

class CacheEntry(Base):
    """Device-local string cache (sync fingerprints and version markers)"""
    __tablename__ = "kv_cache"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)

    def __repr__(self):
        return f"<CacheEntry(key={self.key})>"
