"""Term and file decisions.

``get_term_decisions`` pulls every book of a term from the store and
calculates its recommendation. ``get_file_decisions`` takes a buyer's
decision sheet (one row per store, book and manual quantity), keeps the rows
of one store, sums manual quantities per book and calculates each book
against them.
"""

from collections import OrderedDict
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from coursebooks.decision.calculator import calculate_decision
from coursebooks.decision.exceptions import DecisionInputError
from coursebooks.decision.models import BookSalesSnapshot, TermDecisions
from coursebooks.ingestion import read_rows
from coursebooks.query.models import BookRef
from coursebooks.query.service import QueryService
from coursebooks.utils.logger import LoggerManager
from coursebooks.utils.terms import format_full_term, split_full_term

logger = LoggerManager.get_logger(__name__)

DEFAULT_STORE = 620

DECISION_FILE_FIELDS = ["Store", "EAN-13", "Title", "Decision", "Term"]


def _split_term(full_term) -> Tuple[str, str]:
    parts = split_full_term(full_term)
    if parts is None:
        raise DecisionInputError(f"Unexpected term or year: {full_term!r}", field="Term")
    return parts


def _number(value, field: str, line: int) -> int:
    try:
        number = float(str(value).strip())
    except ValueError as e:
        raise DecisionInputError(f"{field} must be a number, got {value!r} (row {line})", field=field, line=line) from e
    if not number.is_integer():
        raise DecisionInputError(f"{field} must be a whole number, got {value!r} (row {line})", field=field, line=line)
    return int(number)


def _text(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _calculate(service: QueryService, term: str, year: str, books: List[BookRef]) -> TermDecisions:
    rows = service.get_prev_sales_by_books(term, year, books)
    decisions = [calculate_decision(BookSalesSnapshot.model_validate(row)) for row in rows]
    logger.info(
        "decisions.calculated",
        extra={"extra_data": {"term": format_full_term(term, year), "books": len(books), "decisions": len(decisions)}},
    )
    return TermDecisions(term=format_full_term(term, year), decisions=decisions)


def get_term_decisions(service: QueryService, full_term: str) -> TermDecisions:
    """Recommendations for every book sold in a term.

    Args:
        service: Query service over the store
        full_term: Term code such as ``F2024``

    Raises:
        DecisionInputError: If the term code cannot be read
        QueryError: If a store query fails
    """
    term, year = _split_term(full_term)
    books = [
        BookRef(isbn=_text(b["ISBN"]), title=_text(b["Title"]))
        for b in service.get_books_by_term(term, year)
        if b["ISBN"] is not None and b["Title"] is not None
    ]
    return _calculate(service, term, year, books)


def get_file_decisions(
    service: QueryService,
    path: str | Path,
    store: int = DEFAULT_STORE,
    reader: Callable[..., List[Dict]] = read_rows,
) -> TermDecisions:
    """Recommendations for the books of a decision sheet.

    Every row is checked for the fields in DECISION_FILE_FIELDS before
    anything is calculated. Rows of other stores are ignored. Manual
    decisions for the same (ISBN, Title) are summed. The term is read from
    the first row.

    Raises:
        DecisionInputError: If a row misses a field or the sheet has no rows
            for ``store``
        QueryError: If a store query fails
    """
    rows = reader(path, "decision")
    if not rows:
        raise DecisionInputError(f"Decision file has no rows: {path}")

    for line, row in enumerate(rows, start=1):
        for field in DECISION_FILE_FIELDS:
            if row.get(field) is None or _text(row[field]) == "":
                raise DecisionInputError.from_missing_field(field, line, row)

    term, year = _split_term(_text(rows[0]["Term"]))

    manual: "OrderedDict[Tuple[str, str], int]" = OrderedDict()
    for line, row in enumerate(rows, start=1):
        if _number(row["Store"], "Store", line) != store:
            continue
        key = (_text(row["EAN-13"]), _text(row["Title"]))
        manual[key] = manual.get(key, 0) + _number(row["Decision"], "Decision", line)

    if not manual:
        raise DecisionInputError(f"No buying decisions found for store {store} in {path}")

    books = [BookRef(isbn=isbn, title=title, decision=qty) for (isbn, title), qty in manual.items()]
    return _calculate(service, term, year, books)
