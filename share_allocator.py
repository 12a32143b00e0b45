import logging
from decimal import Decimal
from typing import Dict, List, Sequence

from errors import InvalidAmount, ShareMismatch
from models import SHARE_TOLERANCE, ParticipantShare
from precision import round_to, to_decimal

logger = logging.getLogger(__name__)


class ShareAllocator:
    @staticmethod
    def allocate_equal(total, participant_ids: Sequence[str], precision: int) -> List[ParticipantShare]:
        """
        Split `total` evenly between participants.

        Everyone gets the rounded per-person amount and the first participant
        in the given order also absorbs the rounding remainder, so the shares
        always add up to the rounded total.
        """
        total = to_decimal(total)
        if total < 0:
            raise InvalidAmount(f"total must be non-negative, got {total}")
        if not participant_ids:
            raise ValueError("At least one participant is required")

        count = len(participant_ids)
        per_person = round_to(total / count, precision)
        remainder = round_to(total, precision) - per_person * count

        shares = [
            ParticipantShare(participant_id=pid, share_amount=per_person)
            for pid in participant_ids
        ]
        # remainder may be negative when per_person was rounded up
        shares[0].share_amount = per_person + remainder
        return shares

    @staticmethod
    def allocate_custom(total, shares: Dict[str, object], precision: int) -> List[ParticipantShare]:
        """
        Validate explicit per-participant shares against the expense total.

        Raises ShareMismatch when the shares are off by more than 0.01; the
        error carries both sums so the caller can show how far off they are.
        """
        total = to_decimal(total)
        if total < 0:
            raise InvalidAmount(f"total must be non-negative, got {total}")

        allocated = Decimal(0)
        result = []
        for participant_id, amount in shares.items():
            amount = to_decimal(amount)
            if not amount.is_finite() or amount < 0:
                raise InvalidAmount(f"Share for {participant_id} must be non-negative, got {amount}")
            allocated += amount
            result.append(ParticipantShare(participant_id=participant_id, share_amount=amount))

        if abs(allocated - total) > SHARE_TOLERANCE:
            logger.debug(f"Custom shares rejected: {allocated} allocated against {total}")
            raise ShareMismatch(round_to(allocated, precision), round_to(total, precision))

        return result
