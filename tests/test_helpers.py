import json
import logging

import pytest

from zoneweaver.errors import TopologyError
from zoneweaver.helpers import (
    list_available_topologies,
    load_topology,
    resolve_topology_path,
    setup_logging,
)


@pytest.fixture()
def topologies_dir(tmp_path, monkeypatch, topology_data):
    topologies = tmp_path / "topologies"
    topologies.mkdir()
    (topologies / "regions.json").write_text(json.dumps(topology_data))
    (topologies / "notes.txt").write_text("not a topology")
    monkeypatch.chdir(tmp_path)
    return topologies


class TestTopologyFiles:
    def test_resolve_by_path(self, topologies_dir):
        assert resolve_topology_path(str(topologies_dir / "regions.json")) == topologies_dir / "regions.json"

    def test_resolve_by_name(self, topologies_dir):
        assert resolve_topology_path("regions").name == "regions.json"

    def test_resolve_missing(self, topologies_dir):
        with pytest.raises(TopologyError) as exc_info:
            resolve_topology_path("missing")
        assert exc_info.value.step == "loadTopology"

    def test_load_by_name(self, topologies_dir):
        assert load_topology("regions").namespace.full_name == "D.t"

    def test_load_invalid_json(self, topologies_dir):
        (topologies_dir / "broken.json").write_text("{not json")
        with pytest.raises(TopologyError) as exc_info:
            load_topology("broken")
        assert exc_info.value.step == "loadTopology"

    def test_load_directory(self, topologies_dir):
        with pytest.raises(TopologyError) as exc_info:
            load_topology(str(topologies_dir))
        assert exc_info.value.step == "loadTopology"

    def test_list_only_json(self, topologies_dir):
        assert list_available_topologies() == ["regions"]

    def test_list_without_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert list_available_topologies() == []


def test_setup_logging(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    setup_logging("zoneweaver_test.py")
    logging.getLogger("zoneweaver.test").debug("debug goes to the file only")
    for handler in logging.root.handlers:
        handler.flush()
    log_file = tmp_path / "logs" / "zoneweaver_test.log"
    assert "debug goes to the file only" in log_file.read_text()
    assert logging.getLogger("pymongo").level == logging.INFO
