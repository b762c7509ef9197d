"""Term code helpers.

A full term is a term letter followed by a year, e.g. ``F2024`` (fall 2024)
or ``W25``. Two-digit years are read as 20xx.
"""

import re
from pathlib import Path
from typing import Optional, Tuple

_FULL_TERM = re.compile(r"^\s*([A-Za-z])\s*(\d{2}|\d{4})\s*$")
_FILE_TERM = re.compile(r"(?<![A-Za-z])([A-Za-z])(\d{4}|\d{2})(?!\d)")


def _expand_year(year: str) -> str:
    return f"20{year}" if len(year) == 2 else year


def split_full_term(full_term: str) -> Optional[Tuple[str, str]]:
    """Split ``F2024`` into ``("F", "2024")``.

    Returns:
        (term, year) or None when the code is not a term code.
    """
    if full_term is None:
        return None
    match = _FULL_TERM.match(str(full_term))
    if not match:
        return None
    return match.group(1).upper(), _expand_year(match.group(2))


def match_file_term_year(file_path: str | Path) -> Optional[Tuple[str, str]]:
    """Find the term code embedded in a file name.

    ``Enrollment_F24.xlsx`` -> ``("F", "2024")``; the last match in the stem
    wins so prefixes like ``A1_`` do not shadow the term.
    """
    stem = Path(file_path).stem
    matches = _FILE_TERM.findall(stem)
    if not matches:
        return None
    term, year = matches[-1]
    return term.upper(), _expand_year(year)


def format_full_term(term: str, year: str) -> str:
    return f"{term}{year}"
