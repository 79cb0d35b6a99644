import sys
import textwrap
from pathlib import Path

import pytest

# Add the repo root to sys.path so casedash imports without installation
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())

DATA_DIR = ROOT_PATH / "casedash" / "data"

BUS_ROW = "{i}\t{t}\t{pd}\t10\t0\t0\t1\t1\t0\t230\t1\t1.1\t0.9;"
GEN_ROW = "{bus}\t50\t0\t100\t-100\t1.0\t100\t1\t100\t0\t0\t0\t0\t0\t0\t0\t0\t0\t0\t0\t0;"
BRANCH_ROW = "{f}\t{t}\t0.01\t0.1\t0.02\t100\t100\t100\t0\t0\t1\t-360\t360;"


def make_case_text(name="case3", buses=((1, 3, 0), (2, 2, 20), (3, 1, 30)), gens=(2,), branches=((1, 2), (2, 3))):
    """Build MATPOWER case text from (bus, type, Pd) tuples, gen buses and (from, to) pairs."""
    bus_rows = "\n".join("\t" + BUS_ROW.format(i=i, t=t, pd=pd) for i, t, pd in buses)
    gen_rows = "\n".join("\t" + GEN_ROW.format(bus=b) for b in gens)
    branch_rows = "\n".join("\t" + BRANCH_ROW.format(f=f, t=t) for f, t in branches)
    return textwrap.dedent("""\
        function mpc = {name}
        %% test case
        mpc.version = '2';
        mpc.baseMVA = 100;
        %% bus data
        mpc.bus = [
        {bus_rows}
        ];
        mpc.gen = [
        {gen_rows}
        ];
        mpc.branch = [
        {branch_rows}
        ];
        """).format(name=name, bus_rows=bus_rows, gen_rows=gen_rows, branch_rows=branch_rows)


# Common test fixtures
@pytest.fixture
def three_bus_text():
    """3 buses, 1 generator on bus 2, branches 1->2 and 2->3."""
    return make_case_text()


@pytest.fixture
def missing_gen_bus_text():
    """Generator attached to bus 7, which does not exist."""
    return make_case_text(name="bad_gen", gens=(7,))


@pytest.fixture
def malformed_text():
    """Bus 2 row with a non-numeric Pd (line 8, column 6)."""
    return make_case_text().replace("2\t2\t20\t10", "2\t2\tabc\t10")


@pytest.fixture
def case9_text():
    return (DATA_DIR / "case9.m").read_text()


@pytest.fixture
def case5_text():
    return (DATA_DIR / "case5_named.m").read_text()


@pytest.fixture
def write_parser_module(tmp_path: Path):
    """Write a parser module to a temp file and return its 'path:function' target."""
    def _write(source: str, name: str = "fake_parser") -> str:
        path = tmp_path / f"{name}.py"
        path.write_text(textwrap.dedent(source))
        return f"{path.as_posix()}:parse_case"
    return _write


@pytest.fixture
def case_text_factory():
    return make_case_text
