"""Decision calculator schemas.

Field aliases follow the column names of the store queries (``ISBN``,
``CurrActEnrl``, ...) so query rows validate directly; Python code uses the
snake_case names.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coursebooks.store.contract import UNRESOLVED_ID


def _as_text(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return value if value is None else str(value)


class BookSalesSnapshot(BaseModel):
    """One book's enrollment and sales figures for a term code.

    ``Prev*`` figures and ``total_sales`` cover the same term code in prior
    years; ``Curr*`` figures cover the requested year. ``total_sales`` is None
    when the book has no prior sales at all, which is different from zero.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    isbn: str = Field(..., alias="ISBN")
    title: str = Field(..., alias="Title")
    book_id: Optional[int] = Field(None, alias="BookID")
    curr_act_enrl: int = Field(0, alias="CurrActEnrl")
    curr_est_enrl: int = Field(0, alias="CurrEstEnrl")
    curr_est_sales: int = Field(0, alias="CurrEstSales")
    prev_act_enrl: Optional[float] = Field(None, alias="PrevActEnrl")
    prev_est_enrl: Optional[float] = Field(None, alias="PrevEstEnrl")
    total_sales: Optional[float] = Field(None, alias="TotalSales")
    decision: Optional[int] = Field(None, alias="Decision", description="Manual order quantity")

    @field_validator('isbn', 'title', mode='before')
    @classmethod
    def validate_text(cls, v):
        return _as_text(v)

    @field_validator('book_id', mode='before')
    @classmethod
    def validate_book_id(cls, v):
        # The placeholder row means "book unknown"
        if v is None or int(v) == UNRESOLVED_ID:
            return None
        return v

    @field_validator('curr_act_enrl', 'curr_est_enrl', 'curr_est_sales', mode='before')
    @classmethod
    def validate_current(cls, v):
        return 0 if v is None else v


class Decision(BaseModel):
    """Recommended order quantity for one book.

    ``est_sales`` is the figure the recommendation is compared against (the
    manual decision when one was given, else the store's estimate) and
    ``diff`` the absolute gap between the two.
    """
    model_config = ConfigDict(populate_by_name=True)

    isbn: str = Field(..., alias="ISBN")
    title: str = Field(..., alias="Title")
    act_enrl: int = Field(..., alias="ActEnrl")
    est_sales: int = Field(..., alias="EstSales")
    decision: int = Field(..., alias="Decision")
    diff: int = Field(..., alias="Diff")


class TermDecisions(BaseModel):
    """Decisions for every book of one term (``F2024``)."""
    term: str
    decisions: List[Decision] = Field(default_factory=list)
