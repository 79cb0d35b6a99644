"""
MATPOWER Case Parser
====================

Reads the text of a MATPOWER ``.m`` case file::

    function mpc = case9
    mpc.version = '2';
    mpc.baseMVA = 100;
    mpc.bus = [
        1   3   0   0   0   0   1   1   0   345 1   1.1 0.9;
        ...
    ];

and returns a plain dictionary (``name``, ``version``, ``base_mva``,
``bus``, ``gen``, ``branch`` and the optional ``gencost``, ``dcline``,
``bus_name``). Rows are dictionaries keyed by MATPOWER column name.

Only the syntax is checked here. Referential integrity (e.g. a generator
on a missing bus) is the caller's concern.
"""

from __future__ import annotations

import bisect
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..errors import caret_excerpt


class MatpowerSyntaxError(Exception):
    """
    Malformed case text, with the 1-based position of the problem and
    the source line it sits on.
    """

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        snippet: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.snippet = snippet

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        text = f"{self.message} on line {self.line}, column {self.column}"
        if self.snippet is not None:
            text += "\n\n" + caret_excerpt(self.snippet, self.column)
        return text


@dataclass(frozen=True)
class TableLayout:
    """Column layout of one ``mpc.<field>`` matrix."""
    field: str
    columns: Tuple[str, ...]
    required: int
    int_columns: frozenset = frozenset()
    required_v1: Optional[int] = None

    def min_columns(self, version: str) -> int:
        if version == "1" and self.required_v1 is not None:
            return self.required_v1
        return self.required


BUS = TableLayout(
    field="bus",
    columns=(
        "bus_i", "bus_type", "pd", "qd", "gs", "bs", "area", "vm", "va",
        "base_kv", "zone", "vmax", "vmin",
        "lam_p", "lam_q", "mu_vmax", "mu_vmin",
    ),
    required=13,
    int_columns=frozenset({"bus_i", "bus_type", "area", "zone"}),
)

GEN = TableLayout(
    field="gen",
    columns=(
        "bus", "pg", "qg", "qmax", "qmin", "vg", "mbase", "status", "pmax", "pmin",
        "pc1", "pc2", "qc1min", "qc1max", "qc2min", "qc2max",
        "ramp_agc", "ramp_10", "ramp_30", "ramp_q", "apf",
        "mu_pmax", "mu_pmin", "mu_qmax", "mu_qmin",
    ),
    required=21,
    required_v1=10,
    int_columns=frozenset({"bus", "status"}),
)

BRANCH = TableLayout(
    field="branch",
    columns=(
        "f_bus", "t_bus", "r", "x", "b", "rate_a", "rate_b", "rate_c",
        "tap", "shift", "status", "angmin", "angmax",
        "pf", "qf", "pt", "qt", "mu_sf", "mu_st", "mu_angmin", "mu_angmax",
    ),
    required=13,
    required_v1=11,
    int_columns=frozenset({"f_bus", "t_bus", "status"}),
)

DCLINE = TableLayout(
    field="dcline",
    columns=(
        "f_bus", "t_bus", "status", "pf", "pt", "qf", "qt", "vf", "vt",
        "pmin", "pmax", "qminf", "qmaxf", "qmint", "qmaxt", "loss0", "loss1",
        "mu_pmin", "mu_pmax", "mu_qminf", "mu_qmaxf", "mu_qmint", "mu_qmaxt",
    ),
    required=17,
    int_columns=frozenset({"f_bus", "t_bus", "status"}),
)

BUS_TYPES = (1, 2, 3, 4)
COST_MODELS = (1, 2)

_FUNCTION_RE = re.compile(r"^[ \t]*function\s+[A-Za-z_]\w*\s*=\s*([A-Za-z_]\w*)", re.MULTILINE)
_VERSION_RE = re.compile(r"\bmpc\.version\s*=\s*'?([^';\s]*)'?")
_BASE_MVA_RE = re.compile(r"\bmpc\.baseMVA\s*=\s*([^;\s]*)")
_TOKEN_RE = re.compile(r"[^\s,;]+|;|\n")
_STRING_RE = re.compile(r"'((?:[^'\n]|'')*)'")


class _Source:
    """Case text with comments blanked out and offset -> line/column lookup."""

    def __init__(self, text: str):
        self.text = _blank_comments(text)
        self._lines = [ln.rstrip("\r") for ln in text.split("\n")]
        self._line_starts = [0] + [m.end() for m in re.finditer(r"\n", text)]

    def position(self, offset: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1] + 1

    def error(self, message: str, offset: int) -> MatpowerSyntaxError:
        line, column = self.position(offset)
        snippet = self._lines[line - 1]
        return MatpowerSyntaxError(message, line, column, snippet)

    def assignment(self, field: str) -> Optional[re.Match]:
        # `\b...(?![\w.])` keeps mpc.gen from matching mpc.gencost
        return re.search(rf"\bmpc\.{re.escape(field)}(?![\w.])\s*=\s*", self.text)

    def block(self, field: str, open_char: str, close_char: str) -> Optional[Tuple[str, int]]:
        """Return (body, body_offset) of ``mpc.<field> = <open> ... <close>``."""
        m = self.assignment(field)
        if m is None:
            return None
        start = m.end()
        if self.text[start:start + 1] != open_char:
            raise self.error(f"Expected '{open_char}' after mpc.{field} =", start)
        end = self.text.find(close_char, start + 1)
        if end < 0:
            raise self.error(f"Unterminated mpc.{field}: missing '{close_char}'", start)
        return self.text[start + 1:end], start + 1


def _blank_comments(text: str) -> str:
    """Replace ``% ...`` comments with spaces, ignoring ``%`` inside strings."""
    out = []
    for line in text.splitlines(keepends=True):
        in_string = False
        cut = None
        for i, ch in enumerate(line):
            if ch == "'":
                in_string = not in_string
            elif ch == "%" and not in_string:
                cut = i
                break
        if cut is None:
            out.append(line)
        else:
            tail = line[cut:]
            newline = tail[len(tail.rstrip("\r\n")):]
            out.append(line[:cut] + " " * (len(tail) - len(newline)) + newline)
    return "".join(out)


def _number(src: _Source, token: str, offset: int) -> float:
    try:
        return float(token)
    except ValueError:
        raise src.error(f"Invalid number '{token}'", offset) from None


def _integer(src: _Source, token: str, offset: int, column: str) -> int:
    value = _number(src, token, offset)
    if not math.isfinite(value) or value != int(value):
        raise src.error(f"Column '{column}' must be an integer, got '{token}'", offset)
    return int(value)


def _rows(src: _Source, body: str, base: int) -> List[List[Tuple[str, int]]]:
    """Split a matrix body into rows of (token, offset) pairs."""
    rows: List[List[Tuple[str, int]]] = []
    row: List[Tuple[str, int]] = []
    for m in _TOKEN_RE.finditer(body):
        token = m.group(0)
        if token in (";", "\n"):
            if row:
                rows.append(row)
                row = []
            continue
        row.append((token, base + m.start()))
    if row:
        rows.append(row)
    return rows


def _parse_table(src: _Source, layout: TableLayout, version: str, required: bool) -> List[Dict[str, Any]]:
    block = src.block(layout.field, "[", "]")
    if block is None:
        if required:
            raise MatpowerSyntaxError(f"Missing mpc.{layout.field} matrix")
        return []

    body, base = block
    min_cols = layout.min_columns(version)
    records = []
    for row in _rows(src, body, base):
        if len(row) < min_cols:
            raise src.error(
                f"mpc.{layout.field} row needs at least {min_cols} columns, got {len(row)}", row[0][1]
            )
        if len(row) > len(layout.columns):
            raise src.error(
                f"mpc.{layout.field} row has {len(row)} columns, at most {len(layout.columns)} allowed",
                row[len(layout.columns)][1],
            )
        record: Dict[str, Any] = {}
        for name, (token, offset) in zip(layout.columns, row):
            if name in layout.int_columns:
                record[name] = _integer(src, token, offset, name)
            else:
                record[name] = _number(src, token, offset)
        if layout is BUS and record["bus_type"] not in BUS_TYPES:
            raise src.error(f"Unknown bus type {record['bus_type']}", row[1][1])
        records.append(record)
    return records


def _parse_gencost(src: _Source) -> List[Dict[str, Any]]:
    block = src.block("gencost", "[", "]")
    if block is None:
        return []

    body, base = block
    records = []
    for row in _rows(src, body, base):
        if len(row) < 4:
            raise src.error(f"mpc.gencost row needs at least 4 columns, got {len(row)}", row[0][1])
        model = _integer(src, row[0][0], row[0][1], "model")
        if model not in COST_MODELS:
            raise src.error(f"Unknown cost model {model}", row[0][1])
        ncost = _integer(src, row[3][0], row[3][1], "ncost")
        cost = [_number(src, tok, off) for tok, off in row[4:]]
        expected = ncost if model == 2 else 2 * ncost
        if len(cost) != expected:
            raise src.error(f"mpc.gencost row expects {expected} cost values, got {len(cost)}", row[0][1])
        records.append({
            "model": model,
            "startup": _number(src, *row[1]),
            "shutdown": _number(src, *row[2]),
            "ncost": ncost,
            "cost": cost,
        })
    return records


def _parse_bus_names(src: _Source) -> List[str]:
    block = src.block("bus_name", "{", "}")
    if block is None:
        return []
    body, _ = block
    return [m.group(1).replace("''", "'") for m in _STRING_RE.finditer(body)]


def parse_case(text: str) -> Dict[str, Any]:
    """
    Parse MATPOWER case text.

    Args:
        text: Contents of a ``.m`` case file

    Returns:
        Dict with ``name``, ``version``, ``base_mva``, ``bus``, ``gen``,
        ``branch``, ``gencost``, ``dcline`` and ``bus_name``

    Raises:
        MatpowerSyntaxError: If the text is not a well-formed case
    """
    src = _Source(text)

    m = _FUNCTION_RE.search(src.text)
    if m is None:
        raise src.error("Expected 'function mpc = <name>' header", 0)
    name = m.group(1)

    m = _VERSION_RE.search(src.text)
    if m is None:
        raise MatpowerSyntaxError("Missing mpc.version")
    version = m.group(1)
    if version not in ("1", "2"):
        raise src.error(f"Unsupported case version '{version}'", m.start(1))

    m = _BASE_MVA_RE.search(src.text)
    if m is None:
        raise MatpowerSyntaxError("Missing mpc.baseMVA")
    base_mva = _number(src, m.group(1), m.start(1))

    bus = _parse_table(src, BUS, version, required=True)
    if not bus:
        raise MatpowerSyntaxError("mpc.bus has no rows")

    return {
        "name": name,
        "version": version,
        "base_mva": base_mva,
        "bus": bus,
        "gen": _parse_table(src, GEN, version, required=True),
        "branch": _parse_table(src, BRANCH, version, required=True),
        "gencost": _parse_gencost(src),
        "dcline": _parse_table(src, DCLINE, version, required=False),
        "bus_name": _parse_bus_names(src),
    }
