"""
Database models for the course shop
"""
from .user import User, Role, InvoiceRecord, InvoiceStatus, purchased_courses
from .course import Course

__all__ = [
    "User",
    "Role",
    "InvoiceRecord",
    "InvoiceStatus",
    "purchased_courses",
    "Course",
]
