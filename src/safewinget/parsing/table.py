"""
Tabular output parser.

winget prints results as a header line, a rule of dashes, and data lines
aligned under the header. Column widths depend on locale and console width,
so boundaries are inferred per table instead of assumed.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from safewinget._types import ParseStage, RawRow
from safewinget.errors import ParseFailure
from safewinget.parsing.cleaning import clean_output

logger = logging.getLogger(__name__)

KNOWN_COLUMNS = frozenset({"name", "id", "version", "available", "source", "match"})
REQUIRED_COLUMNS = frozenset({"name", "id"})
DEFAULT_SCAN_LIMIT = 50

_DASHES = r"\-‐‑‒–—―─━"
_SEPARATOR = re.compile(rf"^[\s{_DASHES}]*[{_DASHES}]{{3,}}[\s{_DASHES}]*$")
_DASH_RUN = re.compile(rf"[{_DASHES}]+")
_TOKEN = re.compile(r"\S+")
_FIELD_GAP = re.compile(r"\s{2,}")
_SOURCE_VALUES = frozenset({"winget", "msstore"})


@dataclass(frozen=True)
class Column:
    """A header column and the offset its cells start at."""

    name: str
    start: int


def header_columns(line: str) -> list[Column] | None:
    """
    Return the columns of ``line`` if it is a table header, else None.

    A header consists only of known column keywords (any case, any order,
    no repeats) and includes both ``Name`` and ``Id``.
    """
    columns = [Column(m.group().lower(), m.start()) for m in _TOKEN.finditer(line)]
    names = [c.name for c in columns]
    if not names or not REQUIRED_COLUMNS.issubset(names):
        return None
    if len(set(names)) != len(names) or not KNOWN_COLUMNS.issuperset(names):
        return None
    return columns


def is_separator(line: str) -> bool:
    return bool(_SEPARATOR.match(line))


def _column_starts(header: list[Column], separator: str) -> list[Column]:
    runs = [m.start() for m in _DASH_RUN.finditer(separator)]
    if len(runs) == len(header):
        return [Column(c.name, start) for c, start in zip(header, runs)]
    return header


def _mid_token(line: str, cut: int) -> bool:
    return 0 < cut < len(line) and not line[cut - 1].isspace() and not line[cut].isspace()


def _snap(line: str, cut: int) -> int:
    """Move a cut that splits a token by one position, if that lands on a boundary."""
    if not _mid_token(line, cut):
        return cut
    if cut - 1 == 0 or line[cut - 2].isspace():
        return cut - 1
    if cut + 1 >= len(line) or line[cut + 1].isspace():
        return cut + 1
    return cut


class TableParser:
    """
    Converts winget's tabular output into :class:`RawRow` values.

    Example:
        >>> rows = TableParser().parse(output)
        >>> [row.id for row in rows]
        ['Git.Git', 'Microsoft.VisualStudioCode']
    """

    def __init__(self, scan_limit: int = DEFAULT_SCAN_LIMIT) -> None:
        """
        Args:
            scan_limit: How many leading lines may be searched for the first header.
        """
        self.scan_limit = scan_limit

    def parse(self, output: str) -> list[RawRow]:
        """
        Parse ``output`` into rows.

        Rows with an empty ``id`` cell (wrapped or partial lines) are dropped.
        A later header and rule pair starts a new table with fresh columns.

        Raises:
            ParseFailure: ``EMPTY_OUTPUT``, ``HEADER_NOT_FOUND`` or
                ``COLUMN_MISALIGNMENT``.
        """
        text = clean_output(output or "")
        if not text.strip():
            raise ParseFailure(ParseStage.EMPTY_OUTPUT)

        lines = text.split("\n")
        start = self._find_header(lines)
        rows: list[RawRow] = []
        columns: list[Column] = []
        i = start

        while i < len(lines):
            line = lines[i]
            header = header_columns(line)
            if header is not None:
                following = lines[i + 1] if i + 1 < len(lines) else None
                if following is not None and is_separator(following):
                    columns = _column_starts(header, following)
                    logger.debug(f"Table at line {i + 1}: {', '.join(c.name for c in columns)}")
                    i += 2
                    continue
                if not columns:
                    raise ParseFailure(ParseStage.COLUMN_MISALIGNMENT, following)
                # A repeated header without its rule is not data.
                i += 1
                continue

            if line.strip():
                row = self._row(line, columns, i + 1)
                if row.id:
                    rows.append(row)
                else:
                    logger.debug(f"Dropped line {i + 1}: no id")
            i += 1

        return rows

    def _find_header(self, lines: list[str]) -> int:
        for i, line in enumerate(lines[: self.scan_limit]):
            if header_columns(line) is not None:
                return i
        raise ParseFailure(ParseStage.HEADER_NOT_FOUND)

    def _row(self, line: str, columns: list[Column], line_number: int) -> RawRow:
        cuts = [_snap(line, c.start) for c in columns[1:]]
        bounds = [columns[0].start, *cuts, len(line)]
        cells = {
            col.name: line[bounds[k] : bounds[k + 1]].strip() if bounds[k] < bounds[k + 1] else ""
            for k, col in enumerate(columns)
        }

        if self._plausible(line, columns, cuts, cells):
            return RawRow(cells, line_number)
        return RawRow(self._split_fields(line, columns), line_number)

    @staticmethod
    def _plausible(line: str, columns: list[Column], cuts: list[int], cells: dict[str, str]) -> bool:
        names = [c.name for c in columns]
        # Cuts on either side of the name and id cells.
        for name in REQUIRED_COLUMNS:
            k = names.index(name)
            edges = [cuts[j] for j in (k - 1, k) if 0 <= j < len(cuts)]
            if any(_mid_token(line, cut) for cut in edges):
                return False

        if any(ch.isspace() for ch in cells["id"]):
            return False

        # An empty id is fine for a wrapped line, not when later cells hold text.
        if not cells["id"]:
            later = names[names.index("id") + 1 :]
            return not any(cells[name] for name in later)
        return True

    @staticmethod
    def _split_fields(line: str, columns: list[Column]) -> dict[str, str]:
        names = [c.name for c in columns]
        fields = _FIELD_GAP.split(line.strip(), maxsplit=len(names) - 1)
        cells = dict.fromkeys(names, "")

        # Rows that omit an empty middle column still end in the source.
        if (
            len(fields) < len(names)
            and names[-1] == "source"
            and fields[-1].lower() in _SOURCE_VALUES
        ):
            cells["source"] = fields.pop()

        for name, value in zip(names, fields):
            cells[name] = value.strip()
        return cells


def parse_table(output: str, *, scan_limit: int = DEFAULT_SCAN_LIMIT) -> list[RawRow]:
    """Parse winget tabular output with a :class:`TableParser`."""
    return TableParser(scan_limit).parse(output)
