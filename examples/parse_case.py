"""
Parse a bundled case in the worker and run a power flow on it.

Worker -> CaseModel -> pandapower network -> AC power flow.
"""

import sys
from pathlib import Path

# Ensure repo root is on sys.path when running from /examples
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from casedash.bridge import RequestBridge
from casedash.case.network import build_network, run_powerflow, summarize_results
from casedash.logging_utils import configure_logging

CASE_PATH = Path(__file__).resolve().parents[1] / "casedash" / "data" / "case9.m"


def main() -> None:
    configure_logging("INFO")
    with RequestBridge() as bridge:
        case = bridge.parse_file(str(CASE_PATH)).result()

    print(f"Parsed {case.name}: {case.summary()}")

    net = build_network(case)
    run_powerflow(net)
    s = summarize_results(net)

    print("=== Bus voltages (pu) ===")
    print(s["bus"].to_string())
    print("\n=== Line loading (%) ===")
    print(s["line"][["loading_percent"]].to_string())
    print("\n=== Slack injection (MW / MVAr) ===")
    print(s["grid"].to_string())
    print(f"\nLosses: {s['losses_mw']:.2f} MW")


if __name__ == "__main__":
    main()
