"""Term and decision-file recommendations against the fixture catalog."""

import pytest

from coursebooks.decision import DecisionInputError, get_file_decisions, get_term_decisions
from coursebooks.query import QueryService


@pytest.fixture
def service(populated_db):
    return QueryService(populated_db, unit="1")


def sheet(*rows):
    """Reader returning fixed decision-sheet rows."""
    def reader(path, kind, headers=None):
        assert kind == "decision"
        return list(rows)
    return reader


def sheet_row(store, isbn, title, decision, term="F2024"):
    return {"Store": store, "EAN-13": isbn, "Title": title, "Decision": decision, "Term": term}


class TestTermDecisions:
    def test_every_book_of_the_term(self, service):
        result = get_term_decisions(service, "F2024")
        assert result.term == "F2024"

        by_title = {d.title: d for d in result.decisions}
        assert set(by_title) == {"Biology", "Calculus"}

        calculus = by_title["Calculus"]
        assert (calculus.act_enrl, calculus.decision, calculus.est_sales, calculus.diff) == (63, 25, 15, 10)

        biology = by_title["Biology"]
        assert (biology.act_enrl, biology.decision, biology.est_sales, biology.diff) == (30, 6, 5, 1)

    def test_two_digit_year(self, service):
        assert get_term_decisions(service, "F24").term == "F2024"

    def test_term_without_sales(self, service):
        assert get_term_decisions(service, "S2030").decisions == []

    def test_unreadable_term(self, service):
        with pytest.raises(DecisionInputError):
            get_term_decisions(service, "Fall")


class TestFileDecisions:
    def test_manual_quantities_are_summed_per_book(self, service):
        reader = sheet(
            sheet_row(620, 9780000000001.0, "Calculus", 12),
            sheet_row(620, "9780000000001", "Calculus", "8"),
            sheet_row(410, "9780000000002", "Biology", 50),
        )
        result = get_file_decisions(service, "decisions.xlsx", store=620, reader=reader)

        assert [d.title for d in result.decisions] == ["Calculus"]
        decision = result.decisions[0]
        assert decision.decision == 25
        assert decision.est_sales == 20
        assert decision.diff == 5

    def test_term_comes_from_first_row(self, service):
        reader = sheet(sheet_row(620, "9780000000002", "Biology", 6, term="F24"))
        result = get_file_decisions(service, "decisions.csv", reader=reader)
        assert result.term == "F2024"
        assert result.decisions[0].diff == 0

    def test_missing_field_fails_before_calculating(self, service):
        rows = [sheet_row(620, "9780000000001", "Calculus", 12), sheet_row(620, "9780000000002", "Biology", None)]
        with pytest.raises(DecisionInputError) as exc_info:
            get_file_decisions(service, "decisions.csv", reader=sheet(*rows))
        assert exc_info.value.field == "Decision"
        assert exc_info.value.line == 2

    def test_non_numeric_quantity(self, service):
        reader = sheet(sheet_row(620, "9780000000001", "Calculus", "lots"))
        with pytest.raises(DecisionInputError) as exc_info:
            get_file_decisions(service, "decisions.csv", reader=reader)
        assert exc_info.value.field == "Decision"

    def test_no_rows_for_store(self, service):
        reader = sheet(sheet_row(410, "9780000000001", "Calculus", 12))
        with pytest.raises(DecisionInputError):
            get_file_decisions(service, "decisions.csv", store=620, reader=reader)

    def test_empty_sheet(self, service):
        with pytest.raises(DecisionInputError):
            get_file_decisions(service, "decisions.csv", reader=sheet())
