"""
kernel/config.py — Project paths and configuration constants.

All path constants and default run settings live here. ``load_rc`` reads
the optional ``.microbenchrc.yaml`` whose keys become defaults for the
command-line flags.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from domain.errors import InvalidOptionError

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

ROOT = Path(__file__).parent.parent.resolve()
# Run state lives under the directory microbench is started from
STATE_DIR = Path(".microbench")
LOGS_DIR = STATE_DIR / "logs"
LOG_FILE = LOGS_DIR / "microbench.log"
RC_FILE = Path(".microbenchrc.yaml")

# ---------------------------------------------------------------------------
# Run defaults
# ---------------------------------------------------------------------------

# Prefix of the one line a worker prints with its measurements
DEFAULT_MARKER = "//ZxJ/"

DEFAULT_WARMUP_MILLIS = 3000
DEFAULT_RUN_MILLIS = 1000
DEFAULT_DEBUG_REPS = 1000
DEFAULT_TRIALS = 1

# Separates the values of one -D / -J / --vm option
DEFAULT_DELIMITER = ","

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

# rc-file key -> accepted value types
RC_KEYS: dict[str, tuple[type, ...]] = {
    "trials": (int,),
    "warmup_millis": (int,),
    "run_millis": (int,),
    "debug_reps": (int,),
    "marker": (str,),
    "delimiter": (str,),
    "vm": (str, list),
    "time_unit": (str,),
    "print_score": (bool,),
    "measure_memory": (bool,),
    "worker_timeout": (int, float),
    "console": (str,),
}


def load_rc(path: Path = RC_FILE) -> dict[str, Any]:
    """Load run defaults from a YAML rc file.

    A missing file yields no defaults.

    Raises:
        InvalidOptionError: the file is not a mapping, or has an unknown key
            or a value of the wrong type.
    """
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        msg = f"Cannot parse {path}: {exc}"
        raise InvalidOptionError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping of option names to values"
        raise InvalidOptionError(msg)

    rc: dict[str, Any] = {}
    for key, value in data.items():
        name = str(key).replace("-", "_")
        if name not in RC_KEYS:
            msg = f"Unknown option '{key}' in {path}"
            raise InvalidOptionError(msg)
        allowed = RC_KEYS[name]
        # bool is an int subclass; only accept it where bool is expected
        if not isinstance(value, allowed) or (isinstance(value, bool) and bool not in allowed):
            names = " or ".join(t.__name__ for t in allowed)
            msg = f"Option '{key}' in {path} must be {names}, got {value!r}"
            raise InvalidOptionError(msg)
        rc[name] = value
    return rc
