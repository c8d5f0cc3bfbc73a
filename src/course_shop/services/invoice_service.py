"""
Invoice lifecycle: gateway invoice creation, payment reconciliation and
access to the purchased course file
"""
from typing import Any, Dict
import logging

from sqlalchemy.orm import Session

from ..config import Config
from ..db import User, UserStore, CourseStore
from ..exceptions import (
    AuthorizationError, ConflictError, GatewayError, NotFoundError, PendingError, ValidationError
)
from .billing_gateway import PaymentGateway, SUCCESS_STATUS
from .file_access import FileAccessService

logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for selling courses through the payment gateway"""

    def __init__(self, db: Session, config: Config, gateway: PaymentGateway, file_access: FileAccessService):
        self.users = UserStore(db)
        self.courses = CourseStore(db)
        self.config = config
        self.gateway = gateway
        self.file_access = file_access

    def create_invoice(self, user: User, course_id: int) -> str:
        """
        Open a gateway invoice for `course_id` and remember who it is for

        Returns:
            URL of the hosted payment page
        """
        course = self.courses.find_by_id(course_id)
        if course is None:
            raise NotFoundError("No course found with this ID")

        if user.has_purchased(course.id):
            raise ConflictError("Course already acquired")

        currency = self.config.PAYMENT_CURRENCY
        amount = course.price_for(currency)
        if amount is None:
            raise ValidationError(f"Course is not sold in {currency.upper()}")

        result = self.gateway.create_invoice(
            amount=amount,
            currency=currency,
            reference=self.config.MERCHANT_REFERENCE,
            destination=course.name_en,
            redirect_url=self.config.PAYMENT_REDIRECT_URL,
            webhook_url=self.config.PAYMENT_WEBHOOK_URL,
        )

        invoice_id = result.get("invoice_id")
        page_url = result.get("page_url")
        if not invoice_id or not page_url:
            logger.error(f"Gateway returned no invoice for user {user.id}, course {course.id}: {result}")
            raise GatewayError("Payment provider did not return an invoice")

        self.users.append_invoice(user, invoice_id, course.id, page_url=page_url)
        logger.info(f"Invoice {invoice_id} created for user {user.id}, course {course.id}")
        return page_url

    def handle_payment_callback(self, invoice_id: str, status: str) -> Dict[str, Any]:
        """
        Reconcile a gateway status notification

        Only a success status grants the course. Notifications for an invoice
        that was already reconciled return the same result without changes.
        """
        if status != SUCCESS_STATUS:
            logger.info(f"Invoice {invoice_id} reported status '{status}', not granting yet")
            raise PendingError("Invoice is not paid yet", details={"invoice_id": invoice_id, "status": status})

        record = self.users.find_one_by_invoice_id(invoice_id) if invoice_id else None
        if record is None:
            logger.error(f"Payment callback for unknown invoice {invoice_id}")
            raise NotFoundError("No user found with this invoiceId")

        result = {
            "invoice_id": record.invoice_id,
            "course_id": record.course_id,
            "user_id": record.user_id,
        }
        if record.is_granted:
            logger.info(f"Invoice {invoice_id} already reconciled")
            return result

        course = self.courses.find_by_id(record.course_id) if record.course_id is not None else None
        if course is None:
            raise NotFoundError("No course found with this invoiceId")

        user = self.users.find_by_id(record.user_id)
        added = self.users.add_purchase(user, course)
        self.users.mark_invoice_granted(record)
        logger.info(
            f"Invoice {invoice_id} paid: course {course.id} "
            f"{'granted to' if added else 'already owned by'} user {user.id}"
        )
        return result

    def grant_file_access(self, user: User, course_id: int) -> str:
        """Share the course file with the user's email, returning the grant id"""
        course = self.courses.find_by_id(course_id)
        if course is None:
            raise NotFoundError("No course found with this ID")

        if self.config.REQUIRE_PURCHASE_FOR_FILE_ACCESS and not user.has_purchased(course.id):
            logger.warning(f"User {user.id} asked for file access to unpurchased course {course.id}")
            raise AuthorizationError("You have not purchased this course")

        return self.file_access.grant_read(course.file_id, user.email)
