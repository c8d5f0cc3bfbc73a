"""
Course catalog API routes, plus purchase and file access for a course
"""
import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from .auth import get_current_user, restrict_to
from .db import get_db, User, Role, CourseStore
from .exceptions import NotFoundError, ValidationError
from .payment_routes import get_invoice_service
from .schemas import CourseCreate, CourseUpdate
from .services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/courses", tags=["courses"])

MAX_PAGE_SIZE = 100


def _positive_int(params, name: str, default: int) -> int:
    raw = params.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"'{name}' must be a positive integer")
    if value < 1:
        raise ValidationError(f"'{name}' must be a positive integer")
    return value


@router.get("")
def list_courses(request: Request, db: Session = Depends(get_db)):
    """
    List courses

    Query: column filters (`difficulty=beginner`, `duration[gte]=10`),
    `sort=-duration,name_en`, `fields=name_en,price`, `page`, `limit`.
    """
    params = request.query_params
    limit = min(_positive_int(params, "limit", MAX_PAGE_SIZE), MAX_PAGE_SIZE)
    page = _positive_int(params, "page", 1)

    courses = CourseStore(db).find_all(
        query=dict(params),
        sort=params.get("sort"),
        limit=limit,
        offset=(page - 1) * limit,
    )

    fields = [f.strip() for f in params.get("fields", "").split(",") if f.strip()] or None
    return {
        "status": "success",
        "results": len(courses),
        "data": {"courses": [course.to_dict(fields) for course in courses]},
    }


@router.get("/{course_id}")
def get_course(course_id: int, db: Session = Depends(get_db)):
    course = CourseStore(db).find_by_id(course_id)
    if course is None:
        raise NotFoundError("No course found with this ID")
    return {"status": "success", "data": {"course": course.to_dict()}}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_course(
    body: CourseCreate,
    admin: User = Depends(restrict_to(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    course = CourseStore(db).create(**body.model_dump())
    logger.info(f"Course {course.id} created by admin {admin.id}")
    return {"status": "success", "data": {"course": course.to_dict(include_file=True)}}


@router.patch("/{course_id}")
def update_course(
    course_id: int,
    body: CourseUpdate,
    _: User = Depends(restrict_to(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True)
    if changes.get("name_en", "") is None or ("price" in changes and changes["price"] is None):
        raise ValidationError("name_en and price cannot be cleared")

    course = CourseStore(db).find_by_id_and_update(course_id, changes)
    if course is None:
        raise NotFoundError("No course found with this ID")
    return {"status": "success", "data": {"course": course.to_dict(include_file=True)}}


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_course(
    course_id: int,
    admin: User = Depends(restrict_to(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    course = CourseStore(db).find_by_id_and_delete(course_id)
    if course is None:
        raise NotFoundError("No course found with this ID")
    logger.info(f"Course {course_id} deleted by admin {admin.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{course_id}/invoice")
def create_invoice(
    course_id: int,
    user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Open a payment invoice for the course and return the payment page URL"""
    page_url = service.create_invoice(user, course_id)
    return {"status": "success", "data": {"page_url": page_url}}


@router.post("/{course_id}/access")
def grant_access(
    course_id: int,
    user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Share the course file with the current user's email"""
    grant_id = service.grant_file_access(user, course_id)
    return {"status": "success", "data": {"id": grant_id}}
