"""Buyback / reorder quantity calculator.

A book's recommended quantity is its current enrollment times the ratio of
prior sales to prior enrollment:

1. ratio = TotalSales / PrevActEnrl, or DEFAULT_SALES_RATIO when the book has
   no prior sales (TotalSales is None) or no prior enrollment;
2. with no actual enrollment posted yet, the actual figure is projected from
   the estimate using last time's estimate-to-actual drift;
3. Decision = round(actual enrollment * ratio);
4. Diff = |baseline - Decision|, the baseline being the manual decision when
   given, else the store's estimated sales.

Rounding is half-up (62.5 -> 63).
"""

import math

from coursebooks.decision.models import BookSalesSnapshot, Decision

DEFAULT_SALES_RATIO = 0.2


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def sales_ratio(book: BookSalesSnapshot) -> float:
    """Prior sales per enrolled student, or the fallback ratio."""
    if book.total_sales is not None and book.prev_act_enrl:
        return book.total_sales / book.prev_act_enrl
    return DEFAULT_SALES_RATIO


def enrollment_drift(book: BookSalesSnapshot) -> float:
    """Relative change from prior estimated to prior actual enrollment."""
    if not book.prev_est_enrl or book.prev_act_enrl is None:
        return 0.0
    return (book.prev_act_enrl - book.prev_est_enrl) / book.prev_est_enrl


def projected_enrollment(book: BookSalesSnapshot) -> int:
    """Actual enrollment, projected from the estimate when none has posted."""
    if book.curr_act_enrl == 0 and book.curr_est_enrl != 0:
        return round_half_up(book.curr_est_enrl * (1 + enrollment_drift(book)))
    return book.curr_act_enrl


def calculate_decision(book: BookSalesSnapshot) -> Decision:
    """Recommended order quantity for one book.

    Pure: ``book`` is not modified.

    Args:
        book: The book's figures, optionally with a manual decision

    Returns:
        Decision with the projected enrollment, baseline, recommendation and gap
    """
    act_enrl = projected_enrollment(book)
    recommended = round_half_up(act_enrl * sales_ratio(book))
    baseline = book.decision if book.decision is not None else book.curr_est_sales

    return Decision(
        isbn=book.isbn,
        title=book.title,
        act_enrl=act_enrl,
        est_sales=baseline,
        decision=recommended,
        diff=abs(baseline - recommended),
    )
