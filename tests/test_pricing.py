import re

import pytest

from elderease.exceptions import UnknownServiceError
from elderease.models import DynamicPricing, PricingTier
from elderease.pricing import (
    DEFAULT_SERVICE_RATES,
    UnknownServicePolicy,
    build_receipt,
    generate_confirmation_number,
    get_dynamic_adjustment,
)

ASSOCIATE = DynamicPricing(tier=PricingTier.ASSOCIATE, percent=0.0)
PROFICIENT = DynamicPricing(tier=PricingTier.PROFICIENT, percent=0.05)


@pytest.mark.parametrize(
    ("tasks", "rating", "tier", "percent"),
    [
        (45, 4.7, PricingTier.EXPERT, 0.12),
        (40, 4.6, PricingTier.EXPERT, 0.12),
        (40, 4.5, PricingTier.ADVANCED, 0.08),
        (20, 4.4, PricingTier.ADVANCED, 0.08),
        (19, 4.9, PricingTier.PROFICIENT, 0.05),
        (5, 4.2, PricingTier.PROFICIENT, 0.05),
        (4, 5.0, PricingTier.ASSOCIATE, 0.0),
        (100, 4.1, PricingTier.ASSOCIATE, 0.0),
        (0, None, PricingTier.ASSOCIATE, 0.0),
        (50, None, PricingTier.ASSOCIATE, 0.0),
    ],
)
def test_dynamic_adjustment_tiers(tasks, rating, tier, percent) -> None:
    adjustment = get_dynamic_adjustment(tasks, rating)
    assert adjustment.tier == tier
    assert adjustment.percent == percent


def test_dynamic_adjustment_is_monotonic() -> None:
    ratings = [None, 0.0, 4.1, 4.2, 4.4, 4.5, 4.6, 5.0]
    tasks = [0, 4, 5, 19, 20, 39, 40, 80]

    for r in ratings:
        percents = [get_dynamic_adjustment(t, r).percent for t in tasks]
        assert percents == sorted(percents)

    for t in tasks:
        percents = [get_dynamic_adjustment(t, r).percent for r in ratings]
        assert percents == sorted(percents)


def test_receipt_for_single_service() -> None:
    receipt = build_receipt(
        ["Companionship"], {"Companionship": 2}, PROFICIENT, DEFAULT_SERVICE_RATES
    )

    assert len(receipt.line_items) == 1
    item = receipt.line_items[0]
    assert item.name == "Companionship"
    assert item.base_rate == 150
    assert item.adjusted_rate == pytest.approx(157.5)
    assert item.hours == 2
    assert item.amount == pytest.approx(315)
    assert receipt.subtotal == pytest.approx(315)
    assert receipt.commission == pytest.approx(15.75)
    assert receipt.total == pytest.approx(330.75)
    assert receipt.dynamic_pricing == PROFICIENT
    assert receipt.confirmation_number is None


def test_receipt_totals_hold_for_many_services() -> None:
    hours = {
        "Companionship": 1.5,
        "Light Housekeeping": 2,
        "Running Errands": 0.75,
        "Home Visits": 3,
    }
    adjustment = DynamicPricing(tier=PricingTier.EXPERT, percent=0.12)
    receipt = build_receipt(list(hours), hours, adjustment, DEFAULT_SERVICE_RATES)

    assert len(receipt.line_items) == 4
    for item in receipt.line_items:
        assert item.adjusted_rate == pytest.approx(item.base_rate * 1.12)
        assert item.amount == pytest.approx(item.adjusted_rate * item.hours)
    assert receipt.subtotal == pytest.approx(sum(i.amount for i in receipt.line_items))
    assert receipt.total == pytest.approx(receipt.subtotal * 1.05)


def test_receipt_skips_services_without_hours_and_clamps_negatives() -> None:
    receipt = build_receipt(
        ["Companionship", "Running Errands", "Home Visits"],
        {"Companionship": -3, "Home Visits": 1},
        ASSOCIATE,
        DEFAULT_SERVICE_RATES,
    )

    assert [i.name for i in receipt.line_items] == ["Home Visits"]
    assert receipt.subtotal == 180


def test_receipt_with_no_services_is_empty() -> None:
    receipt = build_receipt([], {}, ASSOCIATE, DEFAULT_SERVICE_RATES)

    assert receipt.line_items == ()
    assert receipt.subtotal == 0
    assert receipt.commission == 0
    assert receipt.total == 0


def test_unknown_service_is_priced_at_zero_by_default() -> None:
    receipt = build_receipt(
        ["Unknown Service"], {"Unknown Service": 3}, ASSOCIATE, DEFAULT_SERVICE_RATES
    )

    assert len(receipt.line_items) == 1
    item = receipt.line_items[0]
    assert item.base_rate == 0
    assert item.hours == 3
    assert item.amount == 0
    assert receipt.total == 0


def test_unknown_service_can_be_rejected() -> None:
    with pytest.raises(UnknownServiceError):
        build_receipt(
            ["Unknown Service"],
            {"Unknown Service": 3},
            ASSOCIATE,
            DEFAULT_SERVICE_RATES,
            unknown_service_policy=UnknownServicePolicy.REJECT,
        )


def test_receipt_uses_the_rate_table_it_is_given() -> None:
    rates = {"Socialization": 230}
    receipt = build_receipt(["Socialization"], {"Socialization": 1}, ASSOCIATE, rates)

    assert receipt.subtotal == 230


def test_receipt_builder_is_deterministic() -> None:
    args = (
        ["Companionship", "Running Errands"],
        {"Companionship": 2, "Running Errands": 1},
        PROFICIENT,
        DEFAULT_SERVICE_RATES,
    )
    assert build_receipt(*args) == build_receipt(*args)


def test_random_confirmation_number_format() -> None:
    for _ in range(50):
        assert re.fullmatch(r"#SR-[0-9A-Z]{8}", generate_confirmation_number())


def test_confirmation_number_derived_from_record_id() -> None:
    record_id = "9f1c2b7e4d3a4c5b8e6f7a8b9c0d1e2f"

    first = generate_confirmation_number(record_id)
    assert re.fullmatch(r"#SR-[0-9A-Z]{8}", first)
    assert generate_confirmation_number(record_id) == first
    assert generate_confirmation_number("0" * 31 + "1") == "#SR-00000001"
    assert generate_confirmation_number("0" * 30 + "24") == "#SR-00000010"
