"""
Database layer: engine, session dependency, models and stores
"""
from .base import Base
from .engine import create_database_engine, create_session_factory, init_db, get_db
from .models import User, Role, Course, InvoiceRecord, InvoiceStatus
from .stores import UserStore, CourseStore

__all__ = [
    "Base",
    "create_database_engine",
    "create_session_factory",
    "init_db",
    "get_db",
    "User",
    "Role",
    "Course",
    "InvoiceRecord",
    "InvoiceStatus",
    "UserStore",
    "CourseStore",
]
