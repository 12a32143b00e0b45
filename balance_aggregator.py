import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from currency_converter import CurrencyConverter
from models import Balance, Expense, Member, SettlementSummary
from precision import round_to

logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = Decimal("0.01")


class BalanceAggregator:
    @staticmethod
    def aggregate(
        expenses: Iterable[Expense],
        settlement_currency: str,
        rates: Optional[Dict[str, Decimal]],
        overrides: Optional[Dict[str, Decimal]],
        precision: int,
        members: Optional[List[Member]] = None,
    ) -> Dict[str, Balance]:
        """
        Fold the expense history into one net balance per member.

        balance = paid - share, where paid is what the member fronted and share
        what they consumed, both in the settlement currency. Roster members come
        first (in roster order) even with no activity; anyone else appearing in
        an expense is appended in order of first appearance.
        """
        paid: Dict[str, Decimal] = {}
        share: Dict[str, Decimal] = {}
        names: Dict[str, Optional[str]] = {}

        for member in members or []:
            paid.setdefault(member.id, Decimal(0))
            share.setdefault(member.id, Decimal(0))
            names[member.id] = member.name

        for expense in expenses:
            if expense.deleted:
                continue

            # Every per-expense value is kept at `precision` so balances stay exact
            converted = round_to(
                CurrencyConverter.convert(
                    expense.amount,
                    expense.currency,
                    settlement_currency,
                    rates,
                    overrides,
                    precision,
                    settlement_currency=settlement_currency,
                ),
                precision,
            )

            # Update payer's balance
            paid[expense.paid_by] = paid.get(expense.paid_by, Decimal(0)) + converted
            share.setdefault(expense.paid_by, Decimal(0))

            for pid, portion in BalanceAggregator.split_converted(expense, converted, precision):
                share[pid] = share.get(pid, Decimal(0)) + portion
                paid.setdefault(pid, Decimal(0))

        balances = {}
        for member_id in paid:
            balances[member_id] = Balance(
                member_id=member_id,
                name=names.get(member_id),
                paid=round_to(paid[member_id], precision),
                share=round_to(share[member_id], precision),
                balance=round_to(paid[member_id] - share[member_id], precision),
            )
        return balances

    @staticmethod
    def split_converted(expense: Expense, converted: Decimal, precision: int) -> List[Tuple[str, Decimal]]:
        """
        Spread a converted expense total over its participants.

        Each share keeps its proportion of the original shares and is rounded;
        the first participant absorbs what rounding left over, so the portions
        add up to `converted` exactly. Shares may be up to 0.01 off the amount,
        so proportions are taken against their own sum.
        """
        shares_total = sum((s.share_amount for s in expense.shares), Decimal(0))
        if not shares_total:
            # nothing allocated; the payer carries the cost
            return [(expense.paid_by, converted)]

        portions = [
            (s.participant_id, round_to(converted * s.share_amount / shares_total, precision))
            for s in expense.shares
        ]
        leftover = converted - sum((p for _, p in portions), Decimal(0))
        first_id, first_portion = portions[0]
        portions[0] = (first_id, first_portion + leftover)
        return portions

    @staticmethod
    def summarize(
        expenses: Iterable[Expense],
        settlement_currency: str,
        rates: Optional[Dict[str, Decimal]],
        overrides: Optional[Dict[str, Decimal]],
        precision: int,
    ) -> SettlementSummary:
        """Totals over the live expenses, in the settlement currency"""
        count = 0
        total_amount = Decimal(0)
        total_shared = Decimal(0)
        for expense in expenses:
            if expense.deleted:
                continue
            count += 1
            converted = CurrencyConverter.convert(
                expense.amount,
                expense.currency,
                settlement_currency,
                rates,
                overrides,
                precision,
                settlement_currency=settlement_currency,
            )
            shared = sum((s.share_amount for s in expense.shares), Decimal(0))
            total_amount += converted
            if expense.amount:
                total_shared += converted * shared / expense.amount

        return SettlementSummary(
            total_expenses=count,
            total_amount=round_to(total_amount, precision),
            total_shared=round_to(total_shared, precision),
            is_balanced=abs(total_amount - total_shared) < BALANCE_TOLERANCE,
        )

    @staticmethod
    def is_conserved(balances: Mapping[str, Decimal]) -> bool:
        """Money is conserved: balances cancel out within 0.01"""
        total = sum((Decimal(str(b)) for b in balances.values()), Decimal(0))
        return abs(total) <= BALANCE_TOLERANCE
