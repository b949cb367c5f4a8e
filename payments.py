"""
Payment bridge to Razorpay.

Orders are opened through the Razorpay SDK; checkout signatures are checked
locally as HMAC-SHA256 over "<order_id>|<payment_id>" keyed with the API
secret. A verified payment is not written back to its booking.
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

import razorpay
from pydantic import BaseModel, ConfigDict, Field

import config
from errors import AppError, PaymentGatewayError, SignatureError

logger = logging.getLogger(__name__)


class OrderCreate(BaseModel):
    amount: float = Field(..., gt=0, description="Amount in rupees")


class PaymentVerify(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)
    booking_id: Optional[str] = Field(None, alias="bookingId")


def expected_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class PaymentBridge:
    def __init__(self, key_id: Optional[str], key_secret: Optional[str], client=None, currency: str = "INR"):
        self.key_id = key_id
        self.key_secret = key_secret
        self.currency = currency
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not (self.key_id and self.key_secret):
                raise AppError("Payment gateway not configured")
            self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
        return self._client

    def get_key(self) -> str:
        if not self.key_id:
            raise AppError("Payment gateway not configured")
        return self.key_id

    def create_order(self, amount: float) -> dict:
        options = {
            "amount": int(round(amount * 100)),
            "currency": self.currency,
            "receipt": f"receipt_order_{int(time.time() * 1000)}",
        }
        client = self.client
        try:
            order = client.order.create(data=options)
        except Exception as exc:
            logger.exception("Order creation failed for amount %s", amount)
            raise PaymentGatewayError("Server error while creating order") from exc
        logger.info("Created order %s for amount %s", order.get("id"), amount)
        return order

    def verify_payment(self, order_id: str, payment_id: str, signature: str, booking_id: Optional[str] = None) -> dict:
        if not self.key_secret:
            raise AppError("Payment gateway not configured")
        expected = expected_signature(order_id, payment_id, self.key_secret)
        if not hmac.compare_digest(expected.encode(), signature.encode()):
            logger.warning("Invalid signature for order %s (booking %s)", order_id, booking_id)
            raise SignatureError()
        # TODO: persist a paid marker on the booking once the booking schema carries payment fields.
        logger.info("Payment %s verified for booking %s", payment_id, booking_id)
        return {"orderId": order_id, "paymentId": payment_id, "bookingId": booking_id}


def get_payment_bridge() -> PaymentBridge:
    return PaymentBridge(config.RAZORPAY_API_KEY, config.RAZORPAY_API_SECRET, currency=config.PAYMENT_CURRENCY)
