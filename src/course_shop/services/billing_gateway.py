"""
Payment Gateway - Abstract interface for acquiring providers
Currently backed by Monobank acquiring
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
import logging
import time

import httpx

from ..config import Config
from ..exceptions import GatewayError

logger = logging.getLogger(__name__)

# ISO 4217 numeric codes
CURRENCY_CODES = {
    "uah": 980,
    "usd": 840,
    "eur": 978,
}

SUCCESS_STATUS = "success"


class PaymentGateway(ABC):
    """Abstract base class for payment providers"""

    @abstractmethod
    def create_invoice(
        self,
        amount: int,
        currency: str,
        reference: str,
        destination: str,
        redirect_url: str,
        webhook_url: str,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a hosted payment invoice

        Returns:
            {"invoice_id": ..., "page_url": ...}

        Raises:
            GatewayError: the provider rejected the request or could not be reached
        """
        pass

    @abstractmethod
    def parse_webhook_event(self, payload: Dict) -> Dict[str, Any]:
        """Parse webhook event into {"invoice_id", "status"}"""
        pass


class MonobankGateway(PaymentGateway):
    """Monobank acquiring"""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.monobank.ua",
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff: float = 0.5,
        validity: int = 3600,
    ):
        """
        Args:
            token: merchant X-Token
            max_retries: attempts after the first on transport errors and 5xx
            backoff: base delay in seconds, doubled after each attempt
            validity: invoice lifetime in seconds
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.validity = validity

    def _make_request(self, method: str, endpoint: str, data: Optional[Dict] = None) -> Dict[str, Any]:
        """Make HTTP request to the acquiring API, retrying transient failures"""
        url = f"{self.base_url}{endpoint}"
        headers = {
            "X-Token": self.token or "",
            "Content-Type": "application/json",
        }

        attempt = 0
        while True:
            try:
                response = httpx.request(method, url, headers=headers, json=data, timeout=self.timeout)
                if response.status_code < 500:
                    break
                reason = f"HTTP {response.status_code}"
            except httpx.TransportError as e:
                reason = f"{type(e).__name__}: {e}"

            if attempt >= self.max_retries:
                logger.error(f"Monobank request {method} {endpoint} failed after {attempt + 1} attempts: {reason}")
                raise GatewayError("Payment provider is unavailable", details={"reason": reason})

            delay = self.backoff * (2 ** attempt)
            logger.warning(f"Monobank request {method} {endpoint} failed ({reason}), retrying in {delay:.1f}s")
            time.sleep(delay)
            attempt += 1

        if response.status_code >= 400:
            logger.error(f"Monobank rejected {method} {endpoint}: {response.status_code} {response.text}")
            raise GatewayError(
                "Payment provider rejected the request",
                details={"status_code": response.status_code},
            )

        try:
            return response.json()
        except ValueError as e:
            raise GatewayError("Payment provider returned an invalid response") from e

    def create_invoice(
        self,
        amount: int,
        currency: str,
        reference: str,
        destination: str,
        redirect_url: str,
        webhook_url: str,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        ccy = CURRENCY_CODES.get(currency.lower())
        if ccy is None:
            raise GatewayError(f"Unsupported currency: {currency}")

        result = self._make_request(
            "POST",
            "/api/merchant/invoice/create",
            {
                "amount": amount,
                "ccy": ccy,
                "merchantPaymInfo": {
                    "reference": reference,
                    "destination": destination,
                    "comment": comment or destination,
                },
                "redirectUrl": redirect_url,
                "webHookUrl": webhook_url,
                "validity": self.validity,
                "paymentType": "debit",
            },
        )
        return {
            "invoice_id": result.get("invoiceId"),
            "page_url": result.get("pageUrl"),
        }

    def parse_webhook_event(self, payload: Dict) -> Dict[str, Any]:
        """Parse Monobank invoice status webhook"""
        return {
            "invoice_id": str(payload.get("invoiceId") or ""),
            "status": payload.get("status", ""),
            "amount": payload.get("amount"),
            "raw_data": payload,
        }


def create_payment_gateway(config: Config) -> PaymentGateway:
    """Build the gateway for the current environment's token"""
    if not config.payment_token:
        logger.warning("No Monobank token configured - invoice creation will be rejected by the provider")
    return MonobankGateway(
        token=config.payment_token,
        base_url=config.MONOBANK_API_URL,
        timeout=config.GATEWAY_TIMEOUT,
        max_retries=config.GATEWAY_MAX_RETRIES,
        validity=config.PAYMENT_INVOICE_VALIDITY,
    )
