"""
Payment providers: a mock used until real credentials are configured, and Stripe.
"""

from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from urllib.parse import urlencode

import stripe

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "eur"
MOBILEPAY_MOCK_URL = "https://mobilepay.fi/payment-mock"


class PaymentProviderError(Exception):
    """Raised when the payment provider rejects or fails a request."""


@dataclass
class PaymentIntent:
    id: str
    client_secret: str
    amount: int
    currency: str
    status: str


@dataclass
class MobilePayPayment:
    payment_id: str
    redirect_url: str
    amount: int


@dataclass
class Refund:
    success: bool
    refund_id: str
    amount: int


class PaymentProvider(Protocol):
    def create_payment_intent(
        self, booking_id: str, amount: int, currency: str = DEFAULT_CURRENCY
    ) -> PaymentIntent:
        ...

    def create_mobilepay_payment(
        self, booking_id: str, amount: int, currency: str = DEFAULT_CURRENCY
    ) -> MobilePayPayment:
        ...

    def refund(self, payment_intent_id: str, amount: int) -> Refund:
        ...


def _random_suffix(length: int = 6) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


def _major_units(amount: int) -> str:
    # Exact decimal, never exponent form: 1234567 -> "12345.67", 100000000 -> "1000000".
    return format(Decimal(amount) / 100, "f")


class MockPaymentProvider:
    """Returns synthetic identifiers; nothing is charged or persisted."""

    def create_payment_intent(
        self, booking_id: str, amount: int, currency: str = DEFAULT_CURRENCY
    ) -> PaymentIntent:
        now_ms = int(time.time() * 1000)
        return PaymentIntent(
            id=f"pi_{now_ms}_{_random_suffix()}",
            client_secret=f"pi_secret_{_random_suffix()}",
            amount=amount,
            currency=currency,
            status="requires_payment_method",
        )

    def create_mobilepay_payment(
        self, booking_id: str, amount: int, currency: str = DEFAULT_CURRENCY
    ) -> MobilePayPayment:
        now_ms = int(time.time() * 1000)
        query = urlencode({"amount": _major_units(amount), "ref": booking_id})
        return MobilePayPayment(
            payment_id=f"mp_{now_ms}_{_random_suffix()}",
            redirect_url=f"{MOBILEPAY_MOCK_URL}?{query}",
            amount=amount,
        )

    def refund(self, payment_intent_id: str, amount: int) -> Refund:
        return Refund(
            success=True,
            refund_id=f"re_{int(time.time() * 1000)}",
            amount=amount,
        )


@dataclass
class StripePaymentProvider:
    """Stripe-backed provider. MobilePay runs as a Stripe payment method type."""

    api_key: str
    site_url: str

    def _callback_url(self) -> str:
        return f"{self.site_url.rstrip('/')}/payment/callback"

    def create_payment_intent(
        self, booking_id: str, amount: int, currency: str = DEFAULT_CURRENCY
    ) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata={"bookingId": booking_id},
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            raise PaymentProviderError(str(exc)) from exc
        return PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
            status=intent.status,
        )

    def create_mobilepay_payment(
        self, booking_id: str, amount: int, currency: str = DEFAULT_CURRENCY
    ) -> MobilePayPayment:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                payment_method_types=["mobilepay"],
                payment_method_data={"type": "mobilepay"},
                confirm=True,
                return_url=self._callback_url(),
                metadata={"bookingId": booking_id},
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            raise PaymentProviderError(str(exc)) from exc

        next_action = getattr(intent, "next_action", None)
        redirect = getattr(next_action, "redirect_to_url", None) if next_action else None
        redirect_url = getattr(redirect, "url", None) if redirect else None
        if not redirect_url:
            logger.warning("MobilePay intent %s has no redirect action", intent.id)
            redirect_url = f"{self._callback_url()}?payment_intent={intent.id}"
        return MobilePayPayment(
            payment_id=intent.id, redirect_url=redirect_url, amount=intent.amount
        )

    def refund(self, payment_intent_id: str, amount: int) -> Refund:
        try:
            refund = stripe.Refund.create(
                payment_intent=payment_intent_id,
                amount=amount,
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            raise PaymentProviderError(str(exc)) from exc
        return Refund(
            success=refund.status in ("succeeded", "pending"),
            refund_id=refund.id,
            amount=refund.amount,
        )
