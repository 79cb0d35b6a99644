"""
MATPOWER Parser Module
======================

The parser loaded by the worker process. The bridge treats it as a black
box: ``parse_case(text)`` returns a plain dictionary or raises
``MatpowerSyntaxError``.

``initialize()`` is the module's one-time warm-up hook; the worker's
module loader calls it once before the first parse.
"""

from .parser import MatpowerSyntaxError, parse_case

__all__ = ["MatpowerSyntaxError", "parse_case", "initialize"]

_SELF_TEST_CASE = """function mpc = selftest
mpc.version = '2';
mpc.baseMVA = 100;
mpc.bus = [
	1	3	0	0	0	0	1	1	0	230	1	1.1	0.9;
];
mpc.gen = [];
mpc.branch = [];
"""


def initialize() -> None:
    """Parse a built-in minimal case so a broken install fails at load time."""
    parsed = parse_case(_SELF_TEST_CASE)
    if len(parsed["bus"]) != 1:
        raise RuntimeError("MATPOWER parser self-test failed")
