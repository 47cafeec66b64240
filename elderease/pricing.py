"""
Rate tiers, receipts and confirmation numbers.

Everything here is pure: the rate table is handed in by the caller, so the
same inputs always produce the same receipt.
"""

import secrets
import string
from collections.abc import Iterable, Mapping
from enum import StrEnum

from elderease.exceptions import UnknownServiceError
from elderease.models import DynamicPricing, LineItem, PricingTier, Receipt

COMMISSION_RATE = 0.05

# Base hourly rates (PHP)
DEFAULT_SERVICE_RATES: dict[str, float] = {
    "Companionship": 150,
    "Light Housekeeping": 170,
    "Running Errands": 200,
    "Home Visits": 180,
}

# (tier, min tasks completed, min average rating, surcharge); highest first
TIER_THRESHOLDS: tuple[tuple[PricingTier, int, float, float], ...] = (
    (PricingTier.EXPERT, 40, 4.6, 0.12),
    (PricingTier.ADVANCED, 20, 4.4, 0.08),
    (PricingTier.PROFICIENT, 5, 4.2, 0.05),
)

CONFIRMATION_PREFIX = "#SR-"
CONFIRMATION_ALPHABET = string.digits + string.ascii_uppercase
CONFIRMATION_LENGTH = 8


class UnknownServicePolicy(StrEnum):
    ZERO_RATE = "zero_rate"
    REJECT = "reject"


def get_dynamic_adjustment(
    tasks_completed: int, average_rating: float | None
) -> DynamicPricing:
    rating = average_rating if average_rating is not None else 0.0
    for tier, min_tasks, min_rating, percent in TIER_THRESHOLDS:
        if tasks_completed >= min_tasks and rating >= min_rating:
            return DynamicPricing(tier=tier, percent=percent)
    return DynamicPricing(tier=PricingTier.ASSOCIATE, percent=0.0)


def build_receipt(
    services: Iterable[str],
    hours_by_service: Mapping[str, float],
    adjustment: DynamicPricing,
    rates: Mapping[str, float],
    *,
    unknown_service_policy: UnknownServicePolicy = UnknownServicePolicy.ZERO_RATE,
) -> Receipt:
    """
    Build an itemised receipt for the selected services.

    Services without positive hours are left off the receipt. A service
    missing from ``rates`` is either priced at zero or rejected with
    UnknownServiceError, depending on ``unknown_service_policy``.
    """
    line_items: list[LineItem] = []
    for name in services:
        hours = max(0.0, float(hours_by_service.get(name, 0) or 0))
        if hours <= 0:
            continue

        if name in rates:
            base_rate = float(rates[name])
        elif unknown_service_policy == UnknownServicePolicy.REJECT:
            raise UnknownServiceError(f"No hourly rate is defined for '{name}'.")
        else:
            base_rate = 0.0

        adjusted_rate = base_rate * (1 + adjustment.percent)
        line_items.append(
            LineItem(
                name=name,
                base_rate=base_rate,
                hours=hours,
                adjusted_rate=adjusted_rate,
                amount=adjusted_rate * hours,
            )
        )

    subtotal = sum(li.amount for li in line_items)
    commission = subtotal * COMMISSION_RATE
    return Receipt(
        line_items=tuple(line_items),
        subtotal=subtotal,
        commission=commission,
        total=subtotal + commission,
        dynamic_pricing=adjustment,
    )


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(CONFIRMATION_ALPHABET[rem])
    return "".join(reversed(digits)) or "0"


def generate_confirmation_number(source_id: str | None = None) -> str:
    """
    Return a shareable ``#SR-XXXXXXXX`` reference.

    With a hex ``source_id`` (e.g. a uuid4 document id) the code is its last
    eight base-36 digits, otherwise it is random. Uniqueness is not checked.
    """
    if source_id:
        try:
            code = _to_base36(int(source_id.replace("-", ""), 16))
        except ValueError:
            code = None
        if code is not None:
            return CONFIRMATION_PREFIX + code[-CONFIRMATION_LENGTH:].rjust(
                CONFIRMATION_LENGTH, "0"
            )

    code = "".join(
        secrets.choice(CONFIRMATION_ALPHABET) for _ in range(CONFIRMATION_LENGTH)
    )
    return CONFIRMATION_PREFIX + code
