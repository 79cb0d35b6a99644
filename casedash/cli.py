from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import SettingsError

from .bridge import RequestBridge
from .config import BridgeSettings, load_settings
from .errors import ModuleLoadError, ParseError, WorkerLostError
from .logging_utils import configure_logging


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Parse a MATPOWER case file in the isolated parsing worker."
    )
    parser.add_argument("case", help="Path to a MATPOWER .m case file.")
    parser.add_argument(
        "--output",
        "-o",
        help="Path to write the parsed case as JSON.",
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to a bridge settings JSON file.",
    )
    parser.add_argument(
        "--log-level",
        help="Override the configured log level (DEBUG, INFO, ...).",
    )

    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
        if args.log_level:
            settings = BridgeSettings.model_validate({**settings.model_dump(), "log_level": args.log_level})
        text = Path(args.case).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, SettingsError) as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 2
    except PydanticValidationError as e:
        print("Settings validation error:", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    with RequestBridge(settings) as bridge:
        try:
            case = bridge.parse(text).result()
        except ParseError as e:
            print(f"{e.kind}: {e}", file=sys.stderr)
            for p in getattr(e, "problems", []):
                print(f"- {p}", file=sys.stderr)
            return 1
        except (ModuleLoadError, WorkerLostError) as e:
            print(f"{e.kind}: {e}", file=sys.stderr)
            return 2

    if args.output:
        Path(args.output).write_text(case.model_dump_json(indent=2))

    # Minimal console summary
    s = case.summary()
    print(f"Case: {case.name} (version {case.version}, base {case.base_mva:.0f} MVA)")
    print(f"Buses: {s['buses']}, Generators: {s['generators']}, Branches: {s['branches']}")
    print(f"Total load: {s['total_load_mw']:.1f} MW, In-service capacity: {s['total_gen_capacity_mw']:.1f} MW")
    if case.dclines:
        print(f"DC lines: {len(case.dclines)}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
