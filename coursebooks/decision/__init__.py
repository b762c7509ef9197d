from coursebooks.decision.calculator import DEFAULT_SALES_RATIO, calculate_decision, round_half_up
from coursebooks.decision.exceptions import DecisionInputError
from coursebooks.decision.models import BookSalesSnapshot, Decision, TermDecisions
from coursebooks.decision.service import get_file_decisions, get_term_decisions

__all__ = [
    "DEFAULT_SALES_RATIO",
    "calculate_decision",
    "round_half_up",
    "BookSalesSnapshot",
    "Decision",
    "TermDecisions",
    "DecisionInputError",
    "get_term_decisions",
    "get_file_decisions",
]
