"""
Case Validation
===============

Turns the raw structure returned by the parser into a `CaseModel` and
checks the referential invariants that the parser itself does not:

- bus numbers are unique
- every generator, branch and DC line references an existing bus
- ``bus_names`` (when given) has one entry per bus
- ``gencost`` (when given) has one row per generator, or two (P then Q)
"""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from .models import CaseModel


# Parser output key -> CaseModel field
_RAW_KEYS = {
    "name": "name",
    "version": "version",
    "base_mva": "base_mva",
    "bus": "buses",
    "gen": "generators",
    "branch": "branches",
    "gencost": "gencost",
    "dcline": "dclines",
    "bus_name": "bus_names",
}


def reference_problems(case: CaseModel) -> List[str]:
    """
    List every referential problem in a case.

    Returns:
        Human-readable problem descriptions (empty when the case is sound)
    """
    problems: List[str] = []

    seen = set()
    for bus in case.buses:
        if bus.bus_i in seen:
            problems.append(f"duplicate bus number {bus.bus_i}")
        seen.add(bus.bus_i)

    for k, gen in enumerate(case.generators, start=1):
        if gen.bus not in seen:
            problems.append(f"generator {k} references missing bus {gen.bus}")

    for k, br in enumerate(case.branches, start=1):
        for end, bus_i in (("from", br.f_bus), ("to", br.t_bus)):
            if bus_i not in seen:
                problems.append(f"branch {k} {end} bus {bus_i} does not exist")

    for k, dc in enumerate(case.dclines, start=1):
        for end, bus_i in (("from", dc.f_bus), ("to", dc.t_bus)):
            if bus_i not in seen:
                problems.append(f"dcline {k} {end} bus {bus_i} does not exist")

    if case.bus_names and len(case.bus_names) != len(case.buses):
        problems.append(
            f"bus_name has {len(case.bus_names)} entries for {len(case.buses)} buses"
        )

    if case.gencost and len(case.gencost) not in (len(case.generators), 2 * len(case.generators)):
        problems.append(
            f"gencost has {len(case.gencost)} rows for {len(case.generators)} generators"
        )

    return problems


def build_case(raw: Dict[str, Any]) -> CaseModel:
    """
    Wrap parser output into a validated CaseModel.

    Args:
        raw: Mapping with MATPOWER-style keys (``bus``, ``gen``, ``branch`` ...)

    Raises:
        ValidationError: If the structure does not fit the model or breaks
            a referential invariant
    """
    data = {_RAW_KEYS.get(k, k): v for k, v in raw.items()}
    try:
        case = CaseModel.model_validate(data)
    except PydanticValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ValidationError("Parsed case has an invalid structure", problems) from e

    problems = reference_problems(case)
    if problems:
        raise ValidationError(f"Case '{case.name}' is inconsistent: {problems[0]}", problems)
    return case
