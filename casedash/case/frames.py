"""
Table views of a parsed case for the dashboard grid.
"""

from __future__ import annotations

from typing import Dict, List

import pandas as pd

from .models import CaseModel

BUS_COLUMNS = {
    "bus_i": "Bus",
    "name": "Name",
    "bus_type": "Type",
    "pd": "Pd (MW)",
    "qd": "Qd (MVAr)",
    "vm": "Vm (pu)",
    "va": "Va (deg)",
    "base_kv": "Base kV",
    "vmax": "Vmax (pu)",
    "vmin": "Vmin (pu)",
    "area": "Area",
    "zone": "Zone",
}

GEN_COLUMNS = {
    "bus": "Bus",
    "pg": "Pg (MW)",
    "qg": "Qg (MVAr)",
    "pmin": "Pmin (MW)",
    "pmax": "Pmax (MW)",
    "qmin": "Qmin (MVAr)",
    "qmax": "Qmax (MVAr)",
    "vg": "Vg (pu)",
    "mbase": "Mbase (MVA)",
    "status": "In service",
}

BRANCH_COLUMNS = {
    "f_bus": "From",
    "t_bus": "To",
    "r": "R (pu)",
    "x": "X (pu)",
    "b": "B (pu)",
    "rate_a": "Rate A (MVA)",
    "tap": "Tap",
    "shift": "Shift (deg)",
    "status": "In service",
    "kind": "Kind",
}


def _frame(rows: List[dict], columns: Dict[str, str], index_name: str) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=list(columns))
    df = df.rename(columns=columns)
    df.index = pd.RangeIndex(1, len(df) + 1, name=index_name)
    return df


def bus_frame(case: CaseModel) -> pd.DataFrame:
    rows = []
    for bus in case.buses:
        row = bus.model_dump()
        row["bus_type"] = bus.bus_type.name
        row["name"] = case.bus_label(bus.bus_i)
        rows.append(row)
    return _frame(rows, BUS_COLUMNS, "bus")


def generator_frame(case: CaseModel) -> pd.DataFrame:
    rows = []
    for gen in case.generators:
        row = gen.model_dump()
        row["status"] = gen.in_service
        rows.append(row)
    return _frame(rows, GEN_COLUMNS, "gen")


def branch_frame(case: CaseModel) -> pd.DataFrame:
    rows = []
    for br in case.branches:
        row = br.model_dump()
        row["status"] = br.in_service
        row["kind"] = "transformer" if br.is_transformer else "line"
        rows.append(row)
    return _frame(rows, BRANCH_COLUMNS, "branch")


def case_to_frames(case: CaseModel) -> Dict[str, pd.DataFrame]:
    """
    Build one DataFrame per dashboard table.

    Returns:
        Dict with ``bus``, ``gen`` and ``branch`` DataFrames
    """
    return {
        "bus": bus_frame(case),
        "gen": generator_frame(case),
        "branch": branch_frame(case),
    }
