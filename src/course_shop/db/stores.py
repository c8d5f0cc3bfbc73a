"""
User and course stores

Thin wrappers over a SQLAlchemy session. Every mutating call commits its own
unit of work; there are no multi-call transactions.
"""
import logging
import re
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..exceptions import ValidationError
from .models import User, Course, InvoiceRecord, InvoiceStatus, purchased_courses

logger = logging.getLogger(__name__)


class UserStore:
    """Persistence operations for users and their invoices"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def find_all(self, limit: int = 50, offset: int = 0) -> List[User]:
        return self.db.query(User).order_by(User.id).offset(offset).limit(limit).all()

    def create(self, **fields) -> User:
        if "email" in fields:
            fields["email"] = fields["email"].strip().lower()
        user = User(**fields)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def save(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete(self, user: User) -> None:
        """Remove the user together with their invoices and purchases"""
        self.db.delete(user)
        self.db.commit()

    def find_one_by_invoice_id(self, invoice_id: str) -> Optional[InvoiceRecord]:
        """Look up an invoice by gateway id through the unique index"""
        return self.db.query(InvoiceRecord).filter(InvoiceRecord.invoice_id == invoice_id).first()

    def append_invoice(self, user: User, invoice_id: str, course_id: int, page_url: Optional[str] = None) -> InvoiceRecord:
        record = InvoiceRecord(
            invoice_id=invoice_id,
            user_id=user.id,
            course_id=course_id,
            page_url=page_url,
            status=InvoiceStatus.CREATED.value,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def add_purchase(self, user: User, course: Course) -> bool:
        """
        Add `course` to the user's purchased set

        Returns False if it was already there. A concurrent insert of the same
        pair is caught by the composite primary key and treated the same way.
        """
        exists = self.db.query(purchased_courses).filter(
            purchased_courses.c.user_id == user.id,
            purchased_courses.c.course_id == course.id,
        ).first()
        if exists:
            return False

        try:
            self.db.execute(
                purchased_courses.insert().values(
                    user_id=user.id, course_id=course.id, purchased_at=datetime.utcnow()
                )
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"Course {course.id} already in purchased set of user {user.id}")
            return False

        self.db.expire(user, ["purchased_courses"])
        return True

    def mark_invoice_granted(self, record: InvoiceRecord) -> InvoiceRecord:
        record.status = InvoiceStatus.GRANTED.value
        record.granted_at = datetime.utcnow()
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record


# Query string keys that control listing rather than filter on columns
RESERVED_QUERY_KEYS = {"page", "sort", "limit", "fields"}

FILTER_OPERATORS = {
    "gte": lambda column, value: column >= value,
    "gt": lambda column, value: column > value,
    "lte": lambda column, value: column <= value,
    "lt": lambda column, value: column < value,
}

_FILTER_KEY = re.compile(r"^(?P<field>[a-z_]+)(\[(?P<op>gte|gt|lte|lt)\])?$")


class CourseStore:
    """Persistence operations for the course catalog"""

    # Columns that can be filtered on, with the type query values are cast to
    FILTERABLE = {
        "duration": (Course.duration, int),
        "difficulty": (Course.difficulty, str),
    }
    SORTABLE = {
        "created_at": Course.created_at,
        "duration": Course.duration,
        "difficulty": Course.difficulty,
        "name_en": Course.name_en,
    }
    UPDATABLE = {
        "name_en", "name_uk", "description_en", "description_uk",
        "price", "duration", "difficulty", "file_id",
    }

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, course_id: int) -> Optional[Course]:
        return self.db.get(Course, course_id)

    def find_all(
        self,
        query: Optional[Dict[str, str]] = None,
        sort: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Course]:
        """
        List courses with column filters and sorting

        Filters use `field=value` or `field[op]=value` with op one of
        gte, gt, lte, lt. Sort is a comma separated column list, `-` prefix
        for descending; newest first by default.
        """
        q = self.db.query(Course)

        for key, raw_value in (query or {}).items():
            if key in RESERVED_QUERY_KEYS:
                continue
            match = _FILTER_KEY.match(key)
            if not match or match.group("field") not in self.FILTERABLE:
                raise ValidationError(f"Cannot filter courses by '{key}'")

            column, cast = self.FILTERABLE[match.group("field")]
            try:
                value = cast(raw_value)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid value for '{key}': {raw_value}")

            op = match.group("op")
            q = q.filter(FILTER_OPERATORS[op](column, value) if op else column == value)

        order_by = []
        for part in (sort or "-created_at").split(","):
            part = part.strip()
            if not part:
                continue
            name = part.lstrip("-")
            if name not in self.SORTABLE:
                raise ValidationError(f"Cannot sort courses by '{name}'")
            column = self.SORTABLE[name]
            order_by.append(column.desc() if part.startswith("-") else column.asc())
        order_by.append(Course.id.asc())

        return q.order_by(*order_by).offset(offset).limit(limit).all()

    def create(self, **fields) -> Course:
        course = Course(**fields)
        self.db.add(course)
        self.db.commit()
        self.db.refresh(course)
        return course

    def find_by_id_and_update(self, course_id: int, changes: Dict[str, Any]) -> Optional[Course]:
        course = self.find_by_id(course_id)
        if course is None:
            return None
        for key, value in changes.items():
            if key in self.UPDATABLE:
                setattr(course, key, value)
        self.db.commit()
        self.db.refresh(course)
        return course

    def find_by_id_and_delete(self, course_id: int) -> Optional[Course]:
        course = self.find_by_id(course_id)
        if course is None:
            return None
        self.db.delete(course)
        self.db.commit()
        return course
