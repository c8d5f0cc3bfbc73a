"""
Course catalog model
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from typing import Optional, Iterable

from ..base import Base
from .user import purchased_courses


class Course(Base):
    """Course sold in the catalog, backed by a shared file"""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)

    # Localized fields
    name_en = Column(String(200), nullable=False)
    name_uk = Column(String(200), nullable=True)
    description_en = Column(String(5000), nullable=True)
    description_uk = Column(String(5000), nullable=True)

    # Price per currency in minor units: {"uah": 150000, "usd": 4000}
    price = Column(JSON, nullable=False, default=dict)

    duration = Column(Integer, nullable=True)  # hours
    difficulty = Column(String(20), nullable=True)

    # Backing file on the file-sharing service
    file_id = Column(String(200), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    buyers = relationship(
        "User",
        secondary=purchased_courses,
        back_populates="purchased_courses",
    )

    def __repr__(self):
        return f"<Course(id={self.id}, name={self.name_en})>"

    def price_for(self, currency: str) -> Optional[int]:
        """Price in minor units for `currency`, or None if the course is not sold in it"""
        value = (self.price or {}).get(currency.lower())
        return int(value) if value is not None else None

    def to_dict(self, fields: Optional[Iterable[str]] = None, include_file: bool = False) -> dict:
        """Public representation; `include_file` adds the backing file id for admins"""
        data = {
            "id": self.id,
            "name_en": self.name_en,
            "name_uk": self.name_uk,
            "description_en": self.description_en,
            "description_uk": self.description_uk,
            "price": self.price or {},
            "duration": self.duration,
            "difficulty": self.difficulty,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_file:
            data["file_id"] = self.file_id
        if fields:
            wanted = set(fields) | {"id"}
            data = {key: value for key, value in data.items() if key in wanted}
        return data
