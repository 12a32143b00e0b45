import logging
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from balance_aggregator import BALANCE_TOLERANCE, BalanceAggregator
from errors import UnbalancedLedger
from models import Balance, Expense, Member, RateContext, Settlement, SettlementResult
from precision import round_to, to_decimal

logger = logging.getLogger(__name__)

# Below any display precision; only filters arithmetic noise
EPSILON = Decimal("0.001")
SETTLED_TOLERANCE = Decimal("0.01")


class SettlementOptimizer:
    @staticmethod
    def calculate_balances(
        expenses: List[Expense],
        context: RateContext,
        members: Optional[List[Member]] = None,
    ) -> Dict[str, Balance]:
        """Calculate net balance for each member in the settlement currency"""
        return BalanceAggregator.aggregate(
            expenses,
            context.settlement_currency,
            context.rates,
            context.custom_rates,
            context.precision,
            members=members,
        )

    @staticmethod
    def settle(balances: Mapping[str, object], precision: int) -> List[Settlement]:
        """
        Turn net balances into debtor -> creditor transfers.

        Greedy two-pointer sweep: the largest debtor always pays the largest
        creditor as much as either side can absorb. Ties keep the order of
        `balances`, so identical input always gives identical output. Never
        raises; a vector that does not sum to zero just leaves a remainder.
        """
        creditors = []
        debtors = []

        for member_id, balance in balances.items():
            balance = to_decimal(balance)
            if balance > EPSILON:
                creditors.append((member_id, balance))
            elif balance < -EPSILON:
                debtors.append((member_id, balance))

        # Most negative debtor and most positive creditor first
        debtors.sort(key=lambda x: x[1])
        creditors.sort(key=lambda x: x[1], reverse=True)

        settlements = []
        i = j = 0
        while i < len(debtors) and j < len(creditors):
            debtor, debt = debtors[i]
            creditor, credit = creditors[j]

            amount = min(-debt, credit)
            if amount > EPSILON:
                rounded = round_to(amount, precision)
                if rounded > 0:
                    settlements.append(Settlement(from_member=debtor, to_member=creditor, amount=rounded))

            debtors[i] = (debtor, debt + amount)
            creditors[j] = (creditor, credit - amount)

            if abs(debtors[i][1]) < EPSILON:
                i += 1
            if abs(creditors[j][1]) < EPSILON:
                j += 1

        logger.debug(f"{len(settlements)} settlements for {len(debtors)} debtors and {len(creditors)} creditors")
        return settlements

    @staticmethod
    def settle_balances(balances: Mapping[str, object], precision: int) -> List[Settlement]:
        """settle() behind a conservation check on caller-supplied balances"""
        vector = {member_id: to_decimal(b) for member_id, b in balances.items()}
        if not BalanceAggregator.is_conserved(vector):
            total = sum(vector.values(), Decimal(0))
            raise UnbalancedLedger(total, BALANCE_TOLERANCE)
        return SettlementOptimizer.settle(vector, precision)

    @staticmethod
    def optimize_settlements(
        expenses: List[Expense],
        context: RateContext,
        members: Optional[List[Member]] = None,
    ) -> SettlementResult:
        """Main method: balances, transfers and summary for a project's expenses"""
        live = [e for e in expenses if not e.deleted]
        balances = SettlementOptimizer.calculate_balances(live, context, members)

        vector = {member_id: b.balance for member_id, b in balances.items()}
        settlements = SettlementOptimizer.settle_balances(vector, context.precision)

        summary = BalanceAggregator.summarize(
            live,
            context.settlement_currency,
            context.rates,
            context.custom_rates,
            context.precision,
        )
        if not summary.is_balanced:
            logger.warning(
                f"Expense shares total {summary.total_shared} but amounts total {summary.total_amount}"
            )

        return SettlementResult(
            settlement_currency=context.settlement_currency,
            precision=context.precision,
            using_fallback=context.using_fallback,
            balances=balances,
            settlements=settlements,
            settled=[m for m, b in balances.items() if abs(b.balance) <= SETTLED_TOLERANCE],
            summary=summary,
        )
