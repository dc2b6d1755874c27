"""
Bracket-based tax calculations for LedgerFlow.

Pure functions only: no database access, no module-level state that callers
can mutate. Bracket tables are immutable tuples of ``Bracket`` values and are
passed in explicitly, so the same income and table always produce the same
result.

Calculation Functions:
- compute_progressive_tax(): marginal-bracket tax with per-bracket breakdown
- compute_flat_tax(): single-rate tax for sales/property/... entries
- get_bracket_info(): marginal bracket an income falls into
- compute_quarterly_tax(): estimated quarterly installment

Tables:
- STANDARD_BRACKETS: 15/25/35/45% annual liability table
- DETAILED_BRACKETS: 10% to 37% table used for per-entry estimates
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence, Tuple

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Bracket:
    """Marginal ``rate`` (percent) applied to income above ``threshold``."""
    threshold: Decimal
    rate: Decimal


BracketTable = Tuple[Bracket, ...]


@dataclass(frozen=True)
class BracketSlice:
    threshold: Decimal
    rate: Decimal
    taxable_amount: Decimal
    tax: Decimal


@dataclass(frozen=True)
class TaxComputation:
    """
    Result of a progressive calculation.

    ``effective_rate`` is a percentage, or None when income is zero and
    the rate is undefined.
    """
    tax_amount: Decimal
    effective_rate: Optional[Decimal]
    breakdown: Tuple[BracketSlice, ...] = field(default_factory=tuple)


def make_table(*pairs) -> BracketTable:
    """Build a validated table from ``(threshold, rate)`` pairs."""
    table = tuple(Bracket(Decimal(str(t)), Decimal(str(r))) for t, r in pairs)
    validate_brackets(table)
    return table


def validate_brackets(brackets: Sequence[Bracket]) -> None:
    if not brackets:
        raise ValueError("Bracket table must not be empty")
    if brackets[0].threshold != 0:
        raise ValueError("First bracket must start at 0")
    for lower, upper in zip(brackets, brackets[1:]):
        if upper.threshold <= lower.threshold:
            raise ValueError("Bracket thresholds must be strictly ascending")
    for bracket in brackets:
        if bracket.rate < 0 or bracket.rate > HUNDRED:
            raise ValueError("Bracket rates must be between 0 and 100")


STANDARD_BRACKETS: BracketTable = make_table(
    (0, 15), (50000, 25), (100000, 35), (200000, 45),
)

DETAILED_BRACKETS: BracketTable = make_table(
    (0, 10), (10000, 12), (40000, 22), (85000, 24),
    (165000, 32), (210000, 35), (510000, 37),
)

BRACKET_TABLES = {
    "standard": STANDARD_BRACKETS,
    "detailed": DETAILED_BRACKETS,
}

# Default flat rates (percent) per tax entry type
DEFAULT_TAX_RATES = {
    "income": Decimal("25"),
    "sales": Decimal("10"),
    "property": Decimal("1.5"),
    "self-employment": Decimal("15.3"),
    "corporate": Decimal("21"),
}


def _as_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def compute_progressive_tax(income, brackets: Sequence[Bracket]) -> TaxComputation:
    """
    Calculate tax on ``income`` using marginal brackets.

    Each bracket taxes the slice of income between its threshold and the next
    bracket's threshold (the last bracket takes everything left). Stops as
    soon as no income remains.

    Args:
        income: Non-negative income (Decimal, int, float or numeric string)
        brackets: Ascending table starting at threshold 0

    Returns:
        TaxComputation with total tax, effective rate and per-bracket breakdown
    """
    income = _as_decimal(income)
    if income < 0:
        raise ValueError("Income must be non-negative")
    validate_brackets(brackets)

    remaining = income
    total_tax = ZERO
    breakdown = []
    for index, bracket in enumerate(brackets):
        if remaining <= 0:
            break
        if index + 1 < len(brackets):
            width = brackets[index + 1].threshold - bracket.threshold
            taxable = min(remaining, width)
        else:
            taxable = remaining
        tax = taxable * bracket.rate / HUNDRED
        total_tax += tax
        remaining -= taxable
        breakdown.append(BracketSlice(bracket.threshold, bracket.rate, taxable, tax))

    effective_rate = None if income == 0 else total_tax / income * HUNDRED
    return TaxComputation(total_tax, effective_rate, tuple(breakdown))


def compute_flat_tax(amount, rate_percent) -> Decimal:
    """Tax at a single rate: ``amount * rate_percent / 100``."""
    amount = _as_decimal(amount)
    rate_percent = _as_decimal(rate_percent)
    if amount < 0:
        raise ValueError("Amount must be non-negative")
    if rate_percent < 0 or rate_percent > HUNDRED:
        raise ValueError("Rate must be between 0 and 100")
    return amount * rate_percent / HUNDRED


def get_bracket_info(income, brackets: Sequence[Bracket]) -> Bracket:
    """Return the marginal bracket ``income`` falls into."""
    income = _as_decimal(income)
    validate_brackets(brackets)
    for bracket in reversed(brackets):
        if income >= bracket.threshold:
            return bracket
    return brackets[0]


def compute_quarterly_tax(annual_income, brackets: Sequence[Bracket]) -> Decimal:
    """Estimated quarterly installment for an annual income."""
    return compute_progressive_tax(annual_income, brackets).tax_amount / 4


def get_bracket_table(name: str) -> BracketTable:
    try:
        return BRACKET_TABLES[name]
    except KeyError:
        raise ValueError(f"Unknown bracket table: {name}") from None
