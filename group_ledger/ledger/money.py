"""
Fixed-point money helpers and the equal split.

All arithmetic happens on integers counted in the smallest currency unit
(cents when places=2) and is converted back to Decimal only at the edges.
"""

from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from uuid import UUID

from group_ledger.ledger.errors import InvalidAmountError


# Largest accepted amount has this many digits before the decimal point.
# Balances over many such expenses stay well inside Decimal's default
# 28-digit context.
MAX_AMOUNT_DIGITS = 15


def minor_unit(places: int) -> Decimal:
    """Smallest representable amount, e.g. Decimal('0.01') for two places."""
    return Decimal(1).scaleb(-places)


def parse_amount(value) -> Decimal:
    """
    Turn caller input into a Decimal without going through binary floats.

    Raises InvalidAmountError for anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Amount must be a number, got {value!r}")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Amount must be a number, got {value!r}")
    if not amount.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")
    return amount


def check_amount_range(amount: Decimal) -> None:
    """Raise InvalidAmountError if amount has more than MAX_AMOUNT_DIGITS integer digits."""
    if amount != 0 and amount.adjusted() >= MAX_AMOUNT_DIGITS:
        raise InvalidAmountError(
            f"Amount {amount} is too large, at most {MAX_AMOUNT_DIGITS} digits "
            "before the decimal point are allowed"
        )


def to_minor_units(amount: Decimal, places: int) -> int:
    """
    Convert an amount to an integer count of minor units.

    Raises InvalidAmountError if the amount has more precision than the
    currency allows; it is never rounded.
    """
    scaled = amount.scaleb(places)
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(
            f"Amount {amount} has more than {places} decimal places"
        )
    return int(scaled)


def from_minor_units(units: int, places: int) -> Decimal:
    return (Decimal(units) / (10 ** places)).quantize(minor_unit(places))


def split_units(
    total: int,
    split_among: Sequence[UUID],
    paid_by: UUID,
) -> dict[UUID, int]:
    """
    Divide total minor units equally among participants.

    Each participant gets floor(total / n). The residual (< n units) goes
    to the payer when the payer participates, otherwise one unit each to
    the first participants in listed order.
    """
    participants = list(dict.fromkeys(split_among))
    if not participants:
        raise ValueError("split_among must not be empty")

    base, residual = divmod(total, len(participants))
    shares = {member_id: base for member_id in participants}

    if paid_by in shares:
        shares[paid_by] += residual
    else:
        for member_id in participants[:residual]:
            shares[member_id] += 1

    return shares


def compute_shares(
    amount: Decimal,
    split_among: Sequence[UUID],
    paid_by: UUID,
    places: int = 2,
) -> dict[UUID, Decimal]:
    """Equal split of amount, as Decimals that sum exactly to amount."""
    units = split_units(to_minor_units(amount, places), split_among, paid_by)
    return {member_id: from_minor_units(u, places) for member_id, u in units.items()}
