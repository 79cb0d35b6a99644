"""
MATPOWER Case Dashboard
=======================

Browser dashboard for inspecting power-system case files
(buses, generators, branches).

Architecture:
- matpower/: MATPOWER ``.m`` case text parser (loaded inside the worker)
- worker/: Module loader and parsing worker (runs in its own process)
- bridge/: Main-process request bridge (futures over a pipe)
- case/: Case model, validation, tables and pandapower conversion
- ui/: Streamlit dashboard
"""

__version__ = "1.0.0"
