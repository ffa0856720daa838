import logging
from pathlib import Path

from pydantic import ValidationError

from .config import LOG_DIR, TOPOLOGIES_PATH
from .errors import TopologyError
from .models import Topology

LOAD_STEP = "loadTopology"


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logging(command_name: str):
    """Send DEBUG and up to logs/<command>.log and INFO and up to the console."""
    log_dir = Path(LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG)
    root.addHandler(
        _handler(
            logging.FileHandler(log_dir / f"{Path(command_name).stem}.log"),
            logging.DEBUG,
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    )
    root.addHandler(
        _handler(logging.StreamHandler(), logging.INFO, "%(levelname)s - %(message)s")
    )

    # pymongo is chatty at DEBUG (heartbeats, pool events)
    logging.getLogger("pymongo").setLevel(logging.INFO)


def resolve_topology_path(name: str) -> Path:
    """A topology is either a path to a JSON file or a stem under the topologies directory."""
    path = Path(name)
    if path.exists():
        return path
    candidate = Path(TOPOLOGIES_PATH) / f"{name}.json"
    if candidate.exists():
        return candidate
    raise TopologyError(f"Topology file not found: {name}", step=LOAD_STEP)


def load_topology(name: str) -> Topology:
    """Load and validate a topology, reporting problems as a loadTopology failure."""
    path = resolve_topology_path(name)
    try:
        return Topology.load(path)
    except ValidationError as e:
        raise TopologyError(f"Invalid topology {path}: {e}", step=LOAD_STEP) from e
    except OSError as e:
        raise TopologyError(f"Cannot read topology {path}: {e}", step=LOAD_STEP) from e


def list_available_topologies() -> list[str]:
    """List all available topology files in the topologies/ directory."""
    topologies_dir = Path(TOPOLOGIES_PATH)
    if not topologies_dir.exists():
        return []
    return sorted(f.stem for f in topologies_dir.glob("*.json"))
