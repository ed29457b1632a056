"""
Tests for settlement math.
"""

import random
from decimal import Decimal
from uuid import uuid4

from group_ledger.ledger import (
    apply_adjustments,
    forgiveness_adjustments,
    is_settled,
    minimize_transfers,
    payment_adjustments,
)
from group_ledger.models.group import Transfer


def _balances(*amounts):
    return {uuid4(): Decimal(amount) for amount in amounts}


class TestMinimizeTransfers:
    """Tests for the greedy transfer computation."""

    def test_one_creditor_two_debtors(self):
        """+50 / -20 / -30 settles in two transfers to the creditor."""
        balances = _balances("50.00", "-20.00", "-30.00")
        a, b, c = balances

        transfers = minimize_transfers(balances)

        assert transfers == [
            Transfer(from_member=c, to_member=a, amount=Decimal("30.00")),
            Transfer(from_member=b, to_member=a, amount=Decimal("20.00")),
        ]

    def test_settled_group_needs_no_transfers(self):
        """All zero means nothing to do."""
        assert minimize_transfers(_balances("0", "0", "0")) == []
        assert minimize_transfers({}) == []

    def test_transfers_zero_every_balance(self):
        """Applying the transfers as payments leaves nothing outstanding."""
        balances = _balances("66.66", "-33.33", "-33.33", "10.00", "-10.00")
        transfers = minimize_transfers(balances)
        after = apply_adjustments(balances, payment_adjustments(transfers))
        assert is_settled(after)

    def test_at_most_n_minus_one_transfers(self):
        """n members with a nonzero balance need at most n - 1 transfers."""
        rng = random.Random(7)
        for _ in range(50):
            cents = [rng.randint(-5000, 5000) for _ in range(rng.randint(2, 9))]
            cents.append(-sum(cents))
            balances = {uuid4(): Decimal(c) / 100 for c in cents}
            nonzero = sum(1 for amount in balances.values() if amount != 0)

            transfers = minimize_transfers(balances)

            assert len(transfers) <= max(nonzero - 1, 0)
            assert all(t.amount > 0 for t in transfers)
            assert is_settled(apply_adjustments(balances, payment_adjustments(transfers)))

    def test_ties_follow_roster_order(self):
        """Equal amounts are matched in the order members are listed."""
        balances = _balances("10.00", "10.00", "-10.00", "-10.00")
        a, b, c, d = balances

        transfers = minimize_transfers(balances)

        assert [(t.from_member, t.to_member) for t in transfers] == [(c, a), (d, b)]

    def test_does_not_mutate_input(self):
        """The balances mapping is left alone."""
        balances = _balances("5.00", "-5.00")
        snapshot = dict(balances)
        minimize_transfers(balances)
        assert balances == snapshot


class TestAdjustments:
    """Tests for settlement adjustments."""

    def test_forgiveness_negates_outstanding(self):
        """Zero balances get no adjustment."""
        balances = _balances("40.00", "-40.00", "0.00")
        a, b, c = balances
        assert forgiveness_adjustments(balances) == {
            a: Decimal("-40.00"),
            b: Decimal("40.00"),
        }

    def test_payment_adjustments_net_per_member(self):
        """A member in several transfers gets one net adjustment."""
        a, b, c = uuid4(), uuid4(), uuid4()
        transfers = [
            Transfer(from_member=b, to_member=a, amount=Decimal("20.00")),
            Transfer(from_member=c, to_member=a, amount=Decimal("30.00")),
        ]
        adjustments = payment_adjustments(transfers)
        assert adjustments == {
            a: Decimal("-50.00"),
            b: Decimal("20.00"),
            c: Decimal("30.00"),
        }
        assert sum(adjustments.values()) == 0
