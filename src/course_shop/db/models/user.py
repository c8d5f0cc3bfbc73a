"""
User, purchased course and invoice record models
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Table, PrimaryKeyConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from ..base import Base


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class InvoiceStatus(str, enum.Enum):
    """Reconciliation state of a gateway invoice"""
    CREATED = "created"
    GRANTED = "granted"


# Composite primary key gives the purchased set its no-duplicates guarantee
purchased_courses = Table(
    "purchased_courses",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("course_id", Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
    Column("purchased_at", DateTime, default=datetime.utcnow, nullable=False),
    PrimaryKeyConstraint("user_id", "course_id"),
)


class User(Base):
    """User account model"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_name = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String(20), default=Role.USER.value, nullable=False)
    provider = Column(String(20), default="email", nullable=False)  # 'email' or 'google'

    password_changed_at = Column(DateTime, nullable=True)

    # Password reset: only the hash of the one-time code is stored
    password_reset_token = Column(String, nullable=True)
    password_reset_expires = Column(DateTime, nullable=True)
    password_reset_attempts = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    purchased_courses = relationship(
        "Course",
        secondary=purchased_courses,
        back_populates="buyers",
        lazy="selectin",
    )
    invoices = relationship(
        "InvoiceRecord",
        back_populates="user",
        order_by="InvoiceRecord.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def has_pending_reset(self) -> bool:
        return self.password_reset_token is not None

    def has_purchased(self, course_id: int) -> bool:
        return any(course.id == course_id for course in self.purchased_courses)

    def changed_password_after(self, issued_at: datetime) -> bool:
        """True if the password was changed after a token issued at `issued_at`"""
        if self.password_changed_at is None:
            return False
        return self.password_changed_at > issued_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_name": self.user_name,
            "email": self.email,
            "role": self.role,
            "provider": self.provider,
            "purchased_courses": [course.id for course in self.purchased_courses],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class InvoiceRecord(Base):
    """
    Gateway invoice issued for a course purchase

    The unique invoice_id index maps a gateway callback straight to its
    user and course.
    """
    __tablename__ = "invoice_records"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(String(100), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), default=InvoiceStatus.CREATED.value, nullable=False)
    page_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    granted_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="invoices")

    def __repr__(self):
        return f"<InvoiceRecord(invoice_id={self.invoice_id}, user_id={self.user_id}, status={self.status})>"

    @property
    def is_granted(self) -> bool:
        return self.status == InvoiceStatus.GRANTED.value

    def to_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "course_id": self.course_id,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "granted_at": self.granted_at.isoformat() if self.granted_at else None,
        }
