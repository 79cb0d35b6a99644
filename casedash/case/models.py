"""
Case Model
==========

Structured, immutable representation of a MATPOWER case:
buses, generators, branches plus scalar metadata.

Column names follow the MATPOWER data format (``mpc.bus``, ``mpc.gen``,
``mpc.branch``, ``mpc.gencost``, ``mpc.dcline``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PrivateAttr, model_validator


class BusType(Enum):
    """MATPOWER bus type codes."""
    PQ = 1          # Load bus
    PV = 2          # Generator (voltage controlled) bus
    REF = 3         # Slack / reference bus
    ISOLATED = 4    # Isolated bus


class CostModel(Enum):
    """Generator cost function types."""
    PIECEWISE_LINEAR = 1
    POLYNOMIAL = 2


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Bus(_Record):
    """
    Network node.

    Attributes:
        bus_i: Bus number (unique within a case)
        bus_type: PQ / PV / REF / ISOLATED
        pd, qd: Real (MW) and reactive (MVAr) power demand
        gs, bs: Shunt conductance (MW at V=1 pu) and susceptance (MVAr at V=1 pu)
        vm, va: Voltage magnitude (pu) and angle (degrees)
        base_kv: Base voltage (kV)
    """
    bus_i: int = Field(..., ge=1)
    bus_type: BusType
    pd: float
    qd: float
    gs: float
    bs: float
    area: int
    vm: float
    va: float
    base_kv: float
    zone: int
    vmax: float
    vmin: float
    # OPF results (optional)
    lam_p: Optional[float] = None
    lam_q: Optional[float] = None
    mu_vmax: Optional[float] = None
    mu_vmin: Optional[float] = None


class Generator(_Record):
    """
    Power source attached to a bus.

    Columns after ``pmin`` were added in MATPOWER version 2 and default to
    zero for version 1 cases.
    """
    bus: int
    pg: float
    qg: float
    qmax: float
    qmin: float
    vg: float
    mbase: float
    status: int
    pmax: float
    pmin: float
    pc1: float = 0.0
    pc2: float = 0.0
    qc1min: float = 0.0
    qc1max: float = 0.0
    qc2min: float = 0.0
    qc2max: float = 0.0
    ramp_agc: float = 0.0
    ramp_10: float = 0.0
    ramp_30: float = 0.0
    ramp_q: float = 0.0
    apf: float = 0.0
    mu_pmax: Optional[float] = None
    mu_pmin: Optional[float] = None
    mu_qmax: Optional[float] = None
    mu_qmin: Optional[float] = None

    @property
    def in_service(self) -> bool:
        return self.status > 0


class Branch(_Record):
    """
    Transmission line or transformer between two buses.

    Impedances are per unit on the system MVA base. ``tap == 0`` means a
    line (no off-nominal turns ratio).
    """
    f_bus: int
    t_bus: int
    r: float
    x: float
    b: float
    rate_a: float
    rate_b: float
    rate_c: float
    tap: float
    shift: float
    status: int
    angmin: float = -360.0
    angmax: float = 360.0
    pf: Optional[float] = None
    qf: Optional[float] = None
    pt: Optional[float] = None
    qt: Optional[float] = None
    mu_sf: Optional[float] = None
    mu_st: Optional[float] = None
    mu_angmin: Optional[float] = None
    mu_angmax: Optional[float] = None

    @property
    def in_service(self) -> bool:
        return self.status > 0

    @property
    def is_transformer(self) -> bool:
        return self.tap != 0.0 or self.shift != 0.0


class GenCost(_Record):
    model: CostModel
    startup: float
    shutdown: float
    ncost: int = Field(..., ge=0)
    cost: Tuple[float, ...]

    @model_validator(mode="after")
    def _cost_length(self) -> "GenCost":
        expected = self.ncost if self.model == CostModel.POLYNOMIAL else 2 * self.ncost
        if len(self.cost) != expected:
            raise ValueError(
                f"{self.model.name.lower()} cost with ncost={self.ncost} "
                f"needs {expected} values, got {len(self.cost)}"
            )
        return self


class DcLine(_Record):
    f_bus: int
    t_bus: int
    status: int
    pf: float
    pt: float
    qf: float
    qt: float
    vf: float
    vt: float
    pmin: float
    pmax: float
    qminf: float
    qmaxf: float
    qmint: float
    qmaxt: float
    loss0: float
    loss1: float
    mu_pmin: Optional[float] = None
    mu_pmax: Optional[float] = None
    mu_qminf: Optional[float] = None
    mu_qmaxf: Optional[float] = None
    mu_qmint: Optional[float] = None
    mu_qmaxt: Optional[float] = None


class CaseModel(_Record):
    """
    Parsed power-system case.

    Produced once by the parsing worker and then owned by the caller.
    Referential integrity is checked by `casedash.case.validation`
    before a case is ever handed out.
    """
    name: str
    version: Literal["1", "2"] = "2"
    base_mva: PositiveFloat
    buses: Tuple[Bus, ...]
    generators: Tuple[Generator, ...] = ()
    branches: Tuple[Branch, ...] = ()
    gencost: Tuple[GenCost, ...] = ()
    dclines: Tuple[DcLine, ...] = ()
    bus_names: Tuple[str, ...] = ()

    # bus number -> position in `buses` (first occurrence wins)
    _bus_index: Dict[int, int] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        index: Dict[int, int] = {}
        for k, bus in enumerate(self.buses):
            index.setdefault(bus.bus_i, k)
        self._bus_index = index

    @property
    def bus_ids(self) -> List[int]:
        return [b.bus_i for b in self.buses]

    def get_bus(self, bus_i: int) -> Optional[Bus]:
        """Get a bus by number."""
        k = self._bus_index.get(bus_i)
        return None if k is None else self.buses[k]

    def bus_label(self, bus_i: int) -> str:
        """Display name of a bus: its ``mpc.bus_name`` entry when present."""
        k = self._bus_index.get(bus_i)
        if k is not None and k < len(self.bus_names):
            return self.bus_names[k].strip()
        return f"Bus {bus_i}"

    def summary(self) -> Dict[str, float]:
        """Headline figures for the dashboard."""
        return {
            "buses": len(self.buses),
            "generators": len(self.generators),
            "branches": len(self.branches),
            "base_mva": self.base_mva,
            "total_load_mw": sum(b.pd for b in self.buses),
            "total_gen_capacity_mw": sum(g.pmax for g in self.generators if g.in_service),
        }
