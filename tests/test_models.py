"""Unit tests for topology validation."""

import json

import pytest
from bson.max_key import MaxKey
from bson.min_key import MinKey
from pydantic import ValidationError

from zoneweaver.models import Namespace, Shard, Topology


class TestShard:
    def test_connection_string_without_replica_set(self):
        assert Shard(id="A", address="a:27017").connection_string == "a:27017"

    def test_connection_string_with_replica_set(self):
        shard = Shard(id="A", address="a:27017", replicaSet="rsA")
        assert shard.connection_string == "rsA/a:27017"

    @pytest.mark.parametrize("address", ["a", "a:", ":27017", "a:notaport", "a:0", "a:70000"])
    def test_rejects_bad_address(self, address):
        with pytest.raises(ValidationError):
            Shard(id="A", address=address)


class TestNamespace:
    def test_full_name(self):
        assert Namespace(database="D", collection="t").full_name == "D.t"

    def test_parse_keeps_dots_in_collection(self):
        ns = Namespace.parse("D.system.t")
        assert ns.database == "D"
        assert ns.collection == "system.t"

    def test_parse_requires_dot(self):
        with pytest.raises(ValueError):
            Namespace.parse("D")


class TestTopology:
    def test_loads_camel_case_and_snake_case(self, topology_data):
        topology = Topology.model_validate(topology_data)
        assert topology.key_fields == ["region", "id"]
        assert topology.zones[0].shard_id == "A"
        assert topology.ranges[0].min_bound == {"region": "EAST"}

        topology_data["shard_key"] = topology_data.pop("shardKey")
        assert Topology.model_validate(topology_data).key_fields == ["region", "id"]

    def test_load_from_file(self, tmp_path, topology_data):
        path = tmp_path / "topology.json"
        path.write_text(json.dumps(topology_data))
        topology = Topology.load(path)
        assert topology.namespace.full_name == "D.t"
        assert [s.id for s in topology.shards] == ["A", "B", "C"]

    def test_extended_json_min_max_keys(self, topology_data):
        topology_data["ranges"] = [
            {"zoneLabel": "EAST", "minBound": {"region": {"$minKey": 1}}, "maxBound": {"region": "M"}},
            {"zoneLabel": "WEST", "minBound": {"region": "M"}, "maxBound": {"region": {"$maxKey": 1}}},
        ]
        topology = Topology.model_validate(topology_data)
        assert isinstance(topology.ranges[0].min_bound["region"], MinKey)
        assert isinstance(topology.ranges[1].max_bound["region"], MaxKey)

    def test_rejects_duplicate_shard_ids(self, topology_data):
        topology_data["shards"].append({"id": "A", "address": "other:27017"})
        with pytest.raises(ValidationError, match="duplicate shard ids"):
            Topology.model_validate(topology_data)

    def test_rejects_zone_for_unknown_shard(self, topology_data):
        topology_data["zones"].append({"shardId": "Z", "zoneLabel": "EAST"})
        with pytest.raises(ValidationError, match="unknown shards"):
            Topology.model_validate(topology_data)

    def test_rejects_shard_in_two_zones(self, topology_data):
        topology_data["zones"].append({"shardId": "A", "zoneLabel": "WEST"})
        with pytest.raises(ValidationError, match="more than one zone"):
            Topology.model_validate(topology_data)

    def test_rejects_bad_direction(self, topology_data):
        topology_data["shardKey"][0]["direction"] = 2
        with pytest.raises(ValidationError):
            Topology.model_validate(topology_data)

    def test_rejects_bound_not_on_key_prefix(self, topology_data):
        topology_data["ranges"][0]["minBound"] = {"id": 1}
        topology_data["ranges"][0]["maxBound"] = {"id": 5}
        with pytest.raises(ValidationError, match="prefix"):
            Topology.model_validate(topology_data)

    def test_rejects_empty_range(self, topology_data):
        topology_data["ranges"][0]["maxBound"] = {"region": "EAST"}
        with pytest.raises(ValidationError, match="min_bound >= max_bound"):
            Topology.model_validate(topology_data)

    def test_rejects_mismatched_bound_fields(self, topology_data):
        topology_data["ranges"][0]["maxBound"] = {"region": "EAST~", "id": 10}
        with pytest.raises(ValidationError, match="same fields"):
            Topology.model_validate(topology_data)

    def test_requires_shards_and_key(self, topology_data):
        topology_data["shards"] = []
        topology_data["zones"] = []
        with pytest.raises(ValidationError):
            Topology.model_validate(topology_data)
