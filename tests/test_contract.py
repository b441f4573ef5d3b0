"""
Tests for `domain/contract.py`.

Covers the contract rollover:
- A running contract only gets its end date recomputed.
- A lapsed contract is archived once, its ledger reset, a new period started.
- Archiving is idempotent per contract end date.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.contract import (
    ArchivedContract,
    Contract,
    PartialPayment,
    PaymentMethod,
    PaymentType,
    RolloverTerms,
    rollover,
    round2,
    rounding_allowance,
)

START = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
END = datetime(2025, 2, 15, 12, 0, tzinfo=timezone.utc)


def _payment(amount: str) -> PartialPayment:
    return PartialPayment(amount=Decimal(amount), payment_date=START, created_at=START)


def _recurring(**overrides) -> Contract:
    values = dict(
        total_amount=Decimal("1200"),
        payment_type=PaymentType.RECURRING,
        contract_term=12,
        payment_method=PaymentMethod.CREDIT_CARD,
        payment_date=START,
        contract_end_date=END,
        partial_payments=(_payment("100"),),
    )
    values.update(overrides)
    return Contract(**values)


def test_round2_rounds_half_up() -> None:
    assert round2(Decimal("83.335")) == Decimal("83.34")
    assert round2(Decimal("1000") / 12) == Decimal("83.33")


def test_paid_and_remaining_amounts() -> None:
    contract = _recurring(partial_payments=(_payment("100"), _payment("100")))

    assert contract.paid_amount == Decimal("200")
    assert contract.remaining_amount == Decimal("1000")


def test_fully_paid_allows_installment_rounding() -> None:
    assert rounding_allowance(12) == Decimal("0.060")
    assert rounding_allowance(None) == 0

    short = _recurring(total_amount=Decimal("1000"), partial_payments=(_payment("999.96"),))
    over = _recurring(total_amount=Decimal("100"), contract_term=6, partial_payments=(_payment("100.02"),))
    owing = _recurring(total_amount=Decimal("1000"), partial_payments=(_payment("999.90"),))

    assert short.is_fully_paid
    assert over.is_fully_paid
    assert not owing.is_fully_paid


def test_contract_lapses_at_end_date() -> None:
    contract = _recurring()

    assert contract.is_running(datetime(2025, 2, 15, 11, 59, tzinfo=timezone.utc))
    assert contract.has_lapsed(END)
    assert not Contract().has_lapsed(END)
    assert not Contract().is_running(END)


def test_running_recurring_contract_extends_by_one_month_per_installment() -> None:
    now = datetime(2025, 2, 1, tzinfo=timezone.utc)
    terms = RolloverTerms(payment_type=PaymentType.RECURRING, contract_term=12, has_new_installments=True)

    rolled, archived = rollover(_recurring(), terms, now)

    assert archived is None
    assert rolled.contract_end_date == datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)
    assert rolled.partial_payments == _recurring().partial_payments


def test_running_recurring_contract_without_installment_keeps_end_date() -> None:
    now = datetime(2025, 2, 1, tzinfo=timezone.utc)
    terms = RolloverTerms(payment_type=PaymentType.RECURRING, contract_term=12)

    rolled, archived = rollover(_recurring(), terms, now)

    assert archived is None
    assert rolled.contract_end_date == END


def test_one_time_end_date_is_payment_date_plus_term() -> None:
    terms = RolloverTerms(
        payment_type=PaymentType.ONE_TIME,
        contract_term=6,
        payment_date=datetime(2025, 1, 10, tzinfo=timezone.utc),
    )

    rolled, archived = rollover(Contract(), terms, START)

    assert archived is None
    assert rolled.contract_end_date == datetime(2025, 7, 10, tzinfo=timezone.utc)


def test_unset_payment_type_keeps_end_date() -> None:
    terms = RolloverTerms(payment_type=None, contract_term=12)

    rolled, _ = rollover(_recurring(), terms, START)

    assert rolled.contract_end_date == END


def test_lapsed_contract_is_archived_and_reset() -> None:
    now = datetime(2025, 2, 16, 12, 0, tzinfo=timezone.utc)
    current = _recurring()
    terms = RolloverTerms(payment_type=PaymentType.RECURRING, contract_term=12, has_new_installments=True)

    rolled, archived = rollover(current, terms, now)

    assert archived == ArchivedContract(contract=current, archived_at=now)
    assert rolled.partial_payments == ()
    assert rolled.contract_end_date == datetime(2025, 3, 16, 12, 0, tzinfo=timezone.utc)
    assert rolled.total_amount == current.total_amount


def test_lapsed_one_time_contract_starts_a_full_term() -> None:
    now = datetime(2025, 2, 16, tzinfo=timezone.utc)
    current = _recurring(payment_type=PaymentType.ONE_TIME, partial_payments=())
    terms = RolloverTerms(payment_type=PaymentType.ONE_TIME, contract_term=6)

    rolled, archived = rollover(current, terms, now)

    assert archived is not None
    assert rolled.contract_end_date == datetime(2025, 8, 16, tzinfo=timezone.utc)


def test_archiving_is_idempotent_per_period() -> None:
    now = datetime(2025, 2, 16, tzinfo=timezone.utc)
    current = _recurring()
    history = (ArchivedContract(contract=current, archived_at=datetime(2025, 2, 15, 13, tzinfo=timezone.utc)),)
    terms = RolloverTerms(payment_type=PaymentType.RECURRING, contract_term=12)

    rolled, archived = rollover(current, terms, now, history)

    assert archived is None
    assert rolled.partial_payments == ()


def test_archived_contract_is_immutable() -> None:
    entry = ArchivedContract(contract=_recurring(), archived_at=START)

    with pytest.raises(FrozenInstanceError):
        entry.archived_at = END  # type: ignore[misc]
