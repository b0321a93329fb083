import math
import os
import tempfile
from pathlib import Path

import pytest

# Point the database and retention state at a scratch directory before any
# flighttracker module creates its engine.
_SCRATCH = Path(tempfile.mkdtemp(prefix="flighttracker-tests-"))
os.environ.setdefault("FLIGHTTRACKER_DB_URL", f"sqlite:///{_SCRATCH}/tests.db")
os.environ.setdefault(
    "FLIGHTTRACKER_RETENTION_STATE_FILE", str(_SCRATCH / "retention_cleanup_state")
)

from flighttracker.tracking.cpr import CPR_MAX, cpr_nl  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


def encode_cpr(latitude: float, longitude: float, parity: int, surface: bool = False):
    """Encode a position into 17-bit CPR coordinates for the given parity."""

    span = 90.0 if surface else 360.0
    i = int(parity)
    dlat = span / (60 - i)
    yz = math.floor(CPR_MAX * ((latitude % dlat) / dlat) + 0.5)
    rlat = dlat * (yz / CPR_MAX + math.floor(latitude / dlat))
    ni = max(cpr_nl(rlat) - i, 1)
    dlon = span / ni
    xz = math.floor(CPR_MAX * ((longitude % dlon) / dlon) + 0.5)
    return yz % CPR_MAX, xz % CPR_MAX


@pytest.fixture
def cpr_encode():
    return encode_cpr
