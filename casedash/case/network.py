"""
Planning-level pandapower network from a parsed case (positive-sequence / RMS).
==============================================================================

Scope:
- Balanced three-phase, steady-state AC power flow on the case as given.
- Screening summary: bus voltages, line/transformer loading, slack injection.

Out of scope:
- OPF (``gencost`` is not carried over), DC lines, contingency analysis
"""

from __future__ import annotations

import logging

import numpy as np
import pandapower as pp
from pandapower.converter.pypower import from_ppc

from .models import CaseModel

logger = logging.getLogger(__name__)

# PYPOWER column counts
BUS_COLS = 13
GEN_COLS = 21
BRANCH_COLS = 13


def case_to_ppc(case: CaseModel) -> dict:
    """
    Convert a case to a PYPOWER case dict (numpy matrices, MATPOWER column order).
    """
    bus = np.array(
        [
            [b.bus_i, b.bus_type.value, b.pd, b.qd, b.gs, b.bs, b.area,
             b.vm, b.va, b.base_kv, b.zone, b.vmax, b.vmin]
            for b in case.buses
        ],
        dtype=float,
    ).reshape(-1, BUS_COLS)

    gen = np.array(
        [
            [g.bus, g.pg, g.qg, g.qmax, g.qmin, g.vg, g.mbase, g.status, g.pmax, g.pmin,
             g.pc1, g.pc2, g.qc1min, g.qc1max, g.qc2min, g.qc2max,
             g.ramp_agc, g.ramp_10, g.ramp_30, g.ramp_q, g.apf]
            for g in case.generators
        ],
        dtype=float,
    ).reshape(-1, GEN_COLS)

    branch = np.array(
        [
            [br.f_bus, br.t_bus, br.r, br.x, br.b, br.rate_a, br.rate_b, br.rate_c,
             br.tap, br.shift, br.status, br.angmin, br.angmax]
            for br in case.branches
        ],
        dtype=float,
    ).reshape(-1, BRANCH_COLS)

    return {
        "version": "2",
        "baseMVA": float(case.base_mva),
        "bus": bus,
        "gen": gen,
        "branch": branch,
    }


def build_network(case: CaseModel, f_hz: float = 50.0) -> pp.pandapowerNet:
    """
    Build a pandapower network from a case.

    Buses keep their case numbers in ``net.bus.name``.
    """
    net = from_ppc(case_to_ppc(case), f_hz=f_hz, validate_conversion=False)
    net.name = case.name
    logger.info(
        "Built pandapower net '%s': %d buses, %d lines, %d trafos",
        case.name, len(net.bus), len(net.line), len(net.trafo),
    )
    return net


def run_powerflow(net: pp.pandapowerNet) -> None:
    """Run a single power flow with standard options."""

    # `numba=False` avoids optional dependency warnings and keeps execution reproducible.
    pp.runpp(net, algorithm="nr", init="auto", enforce_q_lims=False, numba=False)


def summarize_results(net: pp.pandapowerNet) -> dict:
    """
    Extract a concise, utility-style summary:
    - Bus voltages (pu)
    - Line and transformer loading (%)
    - Slack injection (MW / MVAr)
    """

    if net.get("res_bus", None) is None or net.res_bus.empty:
        raise RuntimeError("No power flow results found. Run `run_powerflow(net)` first.")

    bus = net.res_bus[["vm_pu", "va_degree", "p_mw", "q_mvar"]].copy()
    bus.index = net.bus["name"].astype(str)
    bus.index.name = "bus"

    line = net.res_line[["loading_percent", "p_from_mw", "q_from_mvar", "pl_mw"]].copy()
    line.index = [
        f"{net.bus.at[f, 'name']}-{net.bus.at[t, 'name']}"
        for f, t in zip(net.line["from_bus"], net.line["to_bus"])
    ]

    trafo = net.res_trafo[["loading_percent", "p_hv_mw", "q_hv_mvar", "pl_mw"]].copy()
    trafo.index = [
        f"{net.bus.at[h, 'name']}-{net.bus.at[lv, 'name']}"
        for h, lv in zip(net.trafo["hv_bus"], net.trafo["lv_bus"])
    ]

    grid = net.res_ext_grid[["p_mw", "q_mvar"]].copy()

    return {
        "bus": bus,
        "line": line,
        "trafo": trafo,
        "grid": grid,
        "losses_mw": float(net.res_line["pl_mw"].sum() + net.res_trafo["pl_mw"].sum()),
    }
