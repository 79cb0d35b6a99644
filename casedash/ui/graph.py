"""
Network Graph
=============

One-line diagram style view of a case: buses as markers, branches as
edges. Positions come from the networkx spring layout.
"""

from __future__ import annotations

from typing import Dict, Optional

import networkx as nx
import numpy as np
import plotly.graph_objects as go

from ..case.models import BusType, CaseModel

BUS_COLORS = {
    BusType.REF: "#d62728",
    BusType.PV: "#2ca02c",
    BusType.PQ: "#1f77b4",
    BusType.ISOLATED: "#7f7f7f",
}


def case_graph(case: CaseModel) -> nx.Graph:
    """
    Undirected bus/branch graph of a case.

    Nodes are bus numbers; parallel branches collapse into one edge.
    Out-of-service branches are kept so the drawing matches the tables.
    """
    G = nx.Graph()
    G.add_nodes_from(case.bus_ids)
    G.add_edges_from(
        (br.f_bus, br.t_bus) for br in case.branches
        if br.f_bus in G and br.t_bus in G and br.f_bus != br.t_bus
    )
    return G


def spring_layout(case: CaseModel, iterations: int = 50, seed: int = 42) -> Dict[int, np.ndarray]:
    """
    Force-directed layout of the case graph.

    Args:
        case: Parsed case
        iterations: Number of relaxation steps
        seed: Random seed for the initial positions

    Returns:
        Dict of {bus number: (x, y)}, centred on the origin within [-1, 1]
    """
    G = case_graph(case)
    if len(G) == 0:
        return {}
    return nx.spring_layout(G, iterations=iterations, seed=seed)


def network_figure(
    case: CaseModel,
    height: int = 420,
    pos: Optional[Dict[int, np.ndarray]] = None,
) -> go.Figure:
    """
    Plotly figure of the case topology.

    Args:
        case: Parsed case
        height: Figure height in pixels
        pos: Precomputed bus positions (see `spring_layout`)
    """
    if pos is None:
        pos = spring_layout(case)
    gen_buses = {g.bus for g in case.generators}

    edge_x, edge_y = [], []
    for br in case.branches:
        if br.f_bus in pos and br.t_bus in pos:
            (x0, y0), (x1, y1) = pos[br.f_bus], pos[br.t_bus]
            edge_x += [x0, x1, None]
            edge_y += [y0, y1, None]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=edge_x, y=edge_y,
        mode="lines",
        line=dict(width=1, color="#999999"),
        hoverinfo="skip",
        name="Branches",
    ))

    for bus_type, color in BUS_COLORS.items():
        buses = [b for b in case.buses if b.bus_type == bus_type]
        if not buses:
            continue
        fig.add_trace(go.Scatter(
            x=[pos[b.bus_i][0] for b in buses],
            y=[pos[b.bus_i][1] for b in buses],
            mode="markers+text",
            text=[str(b.bus_i) for b in buses],
            textposition="top center",
            marker=dict(
                size=[16 if b.bus_i in gen_buses else 10 for b in buses],
                color=color,
                symbol=["diamond" if b.bus_i in gen_buses else "circle" for b in buses],
                line=dict(width=1, color="white"),
            ),
            hovertext=[
                f"{case.bus_label(b.bus_i)}<br>{b.bus_type.name}<br>"
                f"Pd {b.pd:.1f} MW / Qd {b.qd:.1f} MVAr<br>Vm {b.vm:.3f} pu"
                for b in buses
            ],
            hoverinfo="text",
            name=bus_type.name,
        ))

    fig.update_layout(
        height=height,
        showlegend=True,
        margin=dict(l=10, r=10, t=30, b=10),
        xaxis=dict(visible=False),
        yaxis=dict(visible=False, scaleanchor="x"),
        plot_bgcolor="white",
    )
    return fig
