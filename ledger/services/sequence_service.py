"""
Reference id generator: ORDER-001, ORDER-002, ...

The counter lives in the single OrderCounter row. Each increment locks that row
inside its own savepoint, so concurrent callers never read the same number and
a failure leaves the caller's transaction usable. When the counter cannot be
reached the sequencer falls back to a timestamp id instead of failing the
ledger write it is serving.
"""
import logging
import time

from django.conf import settings
from django.db import DatabaseError, transaction

from ledger.models import OrderCounter
from ledger.services.base_service import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "ORDER"
DEFAULT_PADDING = 3


class ReferenceSequencer:

    def __init__(self, using: str = "default", prefix: str = None, padding: int = None):
        config = getattr(settings, "STOCK_LEDGER", {})
        self.using = using
        self.prefix = prefix or config.get("REFERENCE_PREFIX", DEFAULT_PREFIX)
        self.padding = padding if padding is not None else config.get("REFERENCE_PADDING", DEFAULT_PADDING)

    def format(self, number: int) -> str:
        # Padding is a minimum width; 1000 renders as ORDER-1000
        return f"{self.prefix}-{number:0{self.padding}d}"

    def fallback_reference(self) -> str:
        return f"{self.prefix}-{int(time.time() * 1000)}"

    def next_reference(self) -> str:
        try:
            number = self._increment()
        except DatabaseError:
            logger.exception("Order counter unavailable, using timestamp reference")
            return self.fallback_reference()
        return self.format(number)

    def _increment(self) -> int:
        with transaction.atomic(using=self.using):
            counter, _ = (
                OrderCounter.objects.using(self.using)
                .select_for_update()
                .get_or_create(pk=1)
            )
            counter.last_order_number += 1
            counter.save(using=self.using, update_fields=["last_order_number", "updated_at"])
        return counter.last_order_number

    def current_number(self) -> int:
        return OrderCounter.load(using=self.using).last_order_number

    def current_reference(self) -> str:
        return self.format(self.current_number())

    def reset(self, number: int = 0) -> int:
        """
        Set the counter so the next reference is number + 1; returns the old value.

        Admin helper for the order_counter command. Unlike the services it
        raises ValidationError instead of returning a result dict.
        """
        if isinstance(number, bool) or not isinstance(number, int) or number < 0:
            raise ValidationError("Counter can only be reset to a non-negative integer", "number")

        with transaction.atomic(using=self.using):
            counter, _ = (
                OrderCounter.objects.using(self.using)
                .select_for_update()
                .get_or_create(pk=1)
            )
            previous = counter.last_order_number
            counter.last_order_number = number
            counter.save(using=self.using, update_fields=["last_order_number", "updated_at"])

        logger.info("Order counter reset from %s to %s", previous, number)
        return previous
