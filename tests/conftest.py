import logging

import pytest

from zoneweaver.memory import InMemoryCluster
from zoneweaver.models import Topology


def regions_topology_data() -> dict:
    """Three shards, one zone each, keyed on (region, id)."""
    return {
        "shards": [
            {"id": "A", "address": "shard-a:27017"},
            {"id": "B", "address": "shard-b:27017"},
            {"id": "C", "address": "shard-c:27017"},
        ],
        "zones": [
            {"shardId": "A", "zoneLabel": "EAST"},
            {"shardId": "B", "zoneLabel": "WEST"},
            {"shardId": "C", "zoneLabel": "MID"},
        ],
        "namespace": {"database": "D", "collection": "t"},
        "shardKey": [
            {"field": "region", "direction": 1},
            {"field": "id", "direction": 1},
        ],
        "ranges": [
            {"zoneLabel": "EAST", "minBound": {"region": "EAST"}, "maxBound": {"region": "EAST~"}},
            {"zoneLabel": "WEST", "minBound": {"region": "WEST"}, "maxBound": {"region": "WEST~"}},
            {"zoneLabel": "MID", "minBound": {"region": "MID"}, "maxBound": {"region": "MID~"}},
        ],
    }


@pytest.fixture(autouse=True)
def _reset_logging():
    """setup_logging replaces the root handlers; put them back after every test."""
    saved = logging.root.handlers[:]
    yield
    for handler in logging.root.handlers[:]:
        if handler not in saved:
            handler.close()
            logging.root.removeHandler(handler)
    for handler in saved:
        if handler not in logging.root.handlers:
            logging.root.addHandler(handler)


@pytest.fixture()
def topology_data() -> dict:
    return regions_topology_data()


@pytest.fixture()
def topology() -> Topology:
    return Topology.model_validate(regions_topology_data())


@pytest.fixture()
def cluster() -> InMemoryCluster:
    return InMemoryCluster()
