"""
Saved payment methods: per-user card list, default selection and duplicate checks.
"""

from __future__ import annotations

import logging
from typing import Optional

from vango.db import DbClient, SavedPaymentMethod
from vango.types import ServiceResult

logger = logging.getLogger(__name__)


class SavedPaymentMethodService:
    def __init__(self, db: DbClient, *, exclusive_default: bool = False):
        self.db = db
        # When False, setting a default leaves the user's other defaults in place.
        self.exclusive_default = exclusive_default

    def get_user_payment_methods(
        self, user_id: str
    ) -> ServiceResult[list[SavedPaymentMethod]]:
        """All methods for a user, default first, then newest first."""
        try:
            methods = self.db.list_payment_methods(user_id)
        except Exception as exc:
            logger.exception("Error fetching payment methods for %s", user_id)
            return ServiceResult.failed(
                str(exc) or "Failed to fetch payment methods", data=[]
            )
        logger.info("Fetched %d saved payment methods", len(methods))
        return ServiceResult.ok(methods)

    def get_default_payment_method(
        self, user_id: str
    ) -> ServiceResult[SavedPaymentMethod]:
        try:
            method = self.db.find_default_payment_method(user_id)
        except Exception as exc:
            logger.exception("Error fetching default payment method for %s", user_id)
            return ServiceResult.failed(
                str(exc) or "Failed to fetch default payment method"
            )
        if method is None:
            return ServiceResult.not_found()
        return ServiceResult.ok(method)

    def save_payment_method(
        self, record: SavedPaymentMethod
    ) -> ServiceResult[SavedPaymentMethod]:
        """Insert a method. Callers check `check_duplicate_card` first."""
        try:
            saved = self.db.insert_payment_method(record)
        except Exception as exc:
            logger.exception("Error saving payment method")
            return ServiceResult.failed(str(exc) or "Failed to save payment method")
        logger.info("Saved payment method %s (last4 %s)", saved.id, saved.card_last4)
        return ServiceResult.ok(saved)

    def set_default_payment_method(
        self, payment_method_id: str, user_id: str
    ) -> ServiceResult[SavedPaymentMethod]:
        try:
            method = self.db.set_payment_method_default(
                payment_method_id, user_id, exclusive=self.exclusive_default
            )
        except Exception as exc:
            logger.exception("Error setting default payment method %s", payment_method_id)
            return ServiceResult.failed(
                str(exc) or "Failed to set default payment method"
            )
        if method is None:
            return ServiceResult.not_found()
        logger.info("Set default payment method %s", payment_method_id)
        return ServiceResult.ok(method)

    def delete_payment_method(
        self, payment_method_id: str, user_id: str
    ) -> ServiceResult[None]:
        try:
            deleted = self.db.delete_payment_method(payment_method_id, user_id)
        except Exception as exc:
            logger.exception("Error deleting payment method %s", payment_method_id)
            return ServiceResult.failed(str(exc) or "Failed to delete payment method")
        if not deleted:
            return ServiceResult.not_found()
        logger.info("Deleted payment method %s", payment_method_id)
        return ServiceResult.ok(None)

    def check_duplicate_card(
        self,
        user_id: str,
        last4: str,
        exp_month: int,
        exp_year: int,
    ) -> ServiceResult[bool]:
        """
        True when the user already has a card with the same last4 and expiry.
        Advisory only: nothing stops two concurrent saves of the same card.
        """
        try:
            existing: Optional[SavedPaymentMethod] = self.db.find_payment_method_by_card(
                user_id, last4, exp_month, exp_year
            )
        except Exception as exc:
            logger.exception("Error checking duplicate card for %s", user_id)
            return ServiceResult.failed(
                str(exc) or "Failed to check duplicate card", data=False
            )
        return ServiceResult.ok(existing is not None)
