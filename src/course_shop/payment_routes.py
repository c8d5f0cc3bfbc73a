"""
Payment gateway webhook
"""
import logging

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from .auth import get_config
from .config import Config
from .db import get_db
from .exceptions import ValidationError
from .services.billing_gateway import PaymentGateway
from .services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/courses/payment", tags=["payments"])


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_invoice_service(
    request: Request,
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> InvoiceService:
    return InvoiceService(db, config, gateway, request.app.state.file_access)


@router.post("/callback")
async def payment_callback(
    request: Request,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    service: InvoiceService = Depends(get_invoice_service),
):
    """
    Invoice status notification from the gateway

    Non-final statuses answer 202 PAYMENT_PENDING; a paid invoice grants the
    course once, and repeats of the same notification return the same data.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Webhook body must be JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Webhook body must be a JSON object")

    event = gateway.parse_webhook_event(payload)
    logger.info(f"Payment callback for invoice {event.get('invoice_id')}: {event.get('status')}")

    result = await run_in_threadpool(service.handle_payment_callback, event["invoice_id"], event["status"])
    return {"status": "success", "data": result}
