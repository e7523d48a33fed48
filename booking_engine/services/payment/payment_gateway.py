# booking_engine/services/payment/payment_gateway.py
"""
Payment collaborator.

The engine never captures money itself; it asks a gateway to charge an
amount and records the returned reference on the booking.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
import logging

import httpx

from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import DownstreamError

logger = logging.getLogger(__name__)


@dataclass
class PaymentReceipt:
    reference: str
    amount: Decimal
    method: str
    status: str = "succeeded"


class PaymentGateway:
    """Interface; `charge` returns a receipt or raises DownstreamError"""

    def charge(self, amount: Decimal, method: str) -> PaymentReceipt:
        raise NotImplementedError


class HttpPaymentGateway(PaymentGateway):
    def __init__(
            self,
            base_url: Optional[str] = None,
            api_key: Optional[str] = None,
            timeout: Optional[float] = None,
            currency: Optional[str] = None,
            transport: Optional[httpx.BaseTransport] = None
    ):
        settings = get_settings()
        self.base_url = base_url or settings.PAYMENT_API_URL
        self.api_key = api_key or settings.PAYMENT_API_KEY
        self.timeout = timeout or settings.PAYMENT_TIMEOUT_SECONDS
        self.currency = currency or settings.CURRENCY
        self.transport = transport

    def charge(self, amount: Decimal, method: str) -> PaymentReceipt:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {"amount": str(amount), "currency": self.currency, "payment_method": method}

        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.post("/charges", json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()

        except httpx.TimeoutException as exc:
            logger.error(f"Payment gateway timed out after {self.timeout}s")
            raise DownstreamError("Payment gateway timed out", details={"collaborator": "payment"}) from exc

        except httpx.HTTPStatusError as exc:
            logger.error(f"Payment declined: HTTP {exc.response.status_code}: {exc.response.text[:200]}")
            raise DownstreamError(
                "Payment was declined",
                details={"collaborator": "payment", "status_code": exc.response.status_code}
            ) from exc

        except httpx.HTTPError as exc:
            logger.error(f"Payment gateway request failed: {exc}")
            raise DownstreamError("Payment gateway unavailable", details={"collaborator": "payment"}) from exc

        reference = data.get("id") or data.get("reference")
        if not reference:
            raise DownstreamError("Payment gateway returned no charge reference", details={"collaborator": "payment"})

        logger.info(f"Charged {amount} {self.currency} via {method}: {reference}")
        return PaymentReceipt(
            reference=str(reference),
            amount=amount,
            method=method,
            status=data.get("status", "succeeded"),
        )
