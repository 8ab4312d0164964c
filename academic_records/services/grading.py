"""Grading calculator for aggregated results."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

ONE_PLACE = Decimal("0.1")


@dataclass(frozen=True)
class GradeBand:
    """A letter grade band with inclusive lower bound on the 0-100 scale."""

    letter: str
    lower: Decimal
    point: int
    remark: str


# Highest band first; a total belongs to the first band whose lower bound it reaches
GRADE_BANDS: tuple[GradeBand, ...] = (
    GradeBand("A", Decimal("70"), 5, "Excellent"),
    GradeBand("B", Decimal("60"), 4, "Very Good"),
    GradeBand("C", Decimal("50"), 3, "Good"),
    GradeBand("D", Decimal("45"), 2, "Fair"),
    GradeBand("E", Decimal("40"), 1, "Pass"),
    GradeBand("F", Decimal("0"), 0, "Fail"),
)


def round_score(value: Decimal) -> Decimal:
    """Round to one decimal place, halves away from zero."""
    return Decimal(value).quantize(ONE_PLACE, rounding=ROUND_HALF_UP)


def compute_total(
    ca_score: Decimal | None,
    theory_score: Decimal | None,
    exam_score: Decimal | None,
) -> Decimal | None:
    """Total of the three components, or None while any is missing."""
    if ca_score is None or theory_score is None or exam_score is None:
        return None
    return round_score(Decimal(ca_score) + Decimal(theory_score) + Decimal(exam_score))


def band_for(total_score: Decimal) -> GradeBand:
    """Grade band for a total score."""
    total = Decimal(total_score)
    if total < 0 or total > 100:
        raise ValueError(f"Total score {total} is outside the 0-100 scale")
    for band in GRADE_BANDS:
        if total >= band.lower:
            return band
    return GRADE_BANDS[-1]


def grade_for(total_score: Decimal) -> str:
    """Letter grade for a total score."""
    return band_for(total_score).letter
