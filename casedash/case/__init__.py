"""
Case Layer
==========

Parsed case representation and what the dashboard derives from it:
- Immutable case model (buses, generators, branches, costs, DC lines)
- Referential validation
- Table views (pandas)
- pandapower network conversion and power flow
"""

from .models import Branch, Bus, BusType, CaseModel, CostModel, DcLine, GenCost, Generator
from .validation import build_case, reference_problems

__all__ = [
    "Branch", "Bus", "BusType", "CaseModel", "CostModel", "DcLine", "GenCost", "Generator",
    "build_case", "reference_problems",
]
