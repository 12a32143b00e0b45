from decimal import Decimal

import pytest

from models import Expense, Member, ParticipantShare, RateContext


def make_expense(expense_id, amount, paid_by, shares, currency="TWD", **kwargs):
    return Expense(
        id=expense_id,
        amount=Decimal(str(amount)),
        currency=currency,
        paid_by=paid_by,
        shares=[
            ParticipantShare(participant_id=pid, share_amount=Decimal(str(share)))
            for pid, share in shares.items()
        ],
        **kwargs,
    )


@pytest.fixture
def rates():
    return {"USD": Decimal("1"), "TWD": Decimal("32"), "JPY": Decimal("150")}


@pytest.fixture
def members():
    return [
        Member(id="alice", name="Alice"),
        Member(id="bob", name="Bob"),
        Member(id="carol", name="Carol"),
        Member(id="dave", name="Dave"),
    ]


@pytest.fixture
def context(rates):
    return RateContext(rates=rates, settlement_currency="TWD", precision=2)
