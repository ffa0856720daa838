"""In-memory cluster coordinator.

Keeps the same metadata a mongos router keeps in its config database and
rejects the same conflicts, so plans can be exercised without a live cluster.
"""

from typing import Any, Optional

from .db import KeyPairs, ShardState
from .errors import (
    AlreadyExistsConflict,
    ClusterConnectionError,
    RangeOverlapError,
    TopologyError,
)
from .models import Namespace, Shard, ShardKeyField, ZoneRange
from .ranges import bound_key, find_overlap, format_bound, route


class InMemoryCluster:
    def __init__(self, unreachable: set[str] | None = None):
        self.shards: dict[str, ShardState] = {}
        self.databases: set[str] = set()
        self.collections: dict[str, KeyPairs] = {}
        self.ranges: dict[str, list[ZoneRange]] = {}
        self.unreachable = set(unreachable or ())
        self.commands: list[str] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def list_shards(self) -> dict[str, ShardState]:
        return {
            shard_id: ShardState(host=state.host, tags=set(state.tags))
            for shard_id, state in self.shards.items()
        }

    def is_sharding_enabled(self, database: str) -> bool:
        return database in self.databases

    def collection_key(self, namespace: Namespace) -> Optional[KeyPairs]:
        key = self.collections.get(namespace.full_name)
        return list(key) if key is not None else None

    def zone_ranges(self, namespace: Namespace) -> list[ZoneRange]:
        return list(self.ranges.get(namespace.full_name, []))

    def add_shard(self, shard: Shard) -> None:
        self.commands.append("addShard")
        if shard.address in self.unreachable:
            raise ClusterConnectionError(f"Cannot reach shard {shard.id} at {shard.address}")
        existing = self.shards.get(shard.id)
        if existing is not None:
            if existing.host != shard.connection_string:
                raise AlreadyExistsConflict(
                    f"Shard {shard.id} already registered at {existing.host}"
                )
            return
        self.shards[shard.id] = ShardState(host=shard.connection_string)

    def add_shard_to_zone(self, shard_id: str, zone_label: str) -> None:
        self.commands.append("addShardToZone")
        if shard_id not in self.shards:
            raise TopologyError(f"ShardNotFound: {shard_id}")
        self.shards[shard_id].tags.add(zone_label)

    def enable_sharding(self, database: str) -> None:
        self.commands.append("enableSharding")
        self.databases.add(database)

    def shard_collection(self, namespace: Namespace, key: list[ShardKeyField]) -> None:
        self.commands.append("shardCollection")
        pairs = [(f.field, f.direction) for f in key]
        existing = self.collections.get(namespace.full_name)
        if existing is not None and existing != pairs:
            raise AlreadyExistsConflict(
                f"{namespace.full_name} is already sharded on {existing}"
            )
        self.databases.add(namespace.database)
        self.collections[namespace.full_name] = pairs

    def update_zone_key_range(
        self, namespace: Namespace, min_bound: dict, max_bound: dict, zone_label: str
    ) -> None:
        self.commands.append("updateZoneKeyRange")
        if namespace.full_name not in self.collections:
            raise TopologyError(f"NamespaceNotSharded: {namespace.full_name}")
        if not any(zone_label in s.tags for s in self.shards.values()):
            raise TopologyError(f"ZoneNotFound: {zone_label}")
        fields = [name for name, _ in self.collections[namespace.full_name]]
        new_range = ZoneRange(
            zone_label=zone_label, min_bound=dict(min_bound), max_bound=dict(max_bound)
        )
        ranges = self.ranges.setdefault(namespace.full_name, [])
        if any(r.same_as(new_range, fields) for r in ranges):
            return
        overlap = find_overlap([*ranges, new_range], fields)
        if overlap:
            other = overlap[1] if overlap[0] is new_range else overlap[0]
            raise RangeOverlapError(
                f"Range for zone {zone_label} overlaps zone {other.zone_label}"
            )
        ranges.append(new_range)
        ranges.sort(key=lambda r: bound_key(r.min_bound, fields))

    def route(self, namespace: Namespace, document: dict[str, Any]) -> Optional[str]:
        """Shard a document lands on, or None if it is outside every zone range."""
        fields = [name for name, _ in self.collections[namespace.full_name]]
        return route(
            document,
            fields,
            self.zone_ranges(namespace),
            {shard_id: state.tags for shard_id, state in self.shards.items()},
        )

    def snapshot(self) -> dict:
        """Comparable view of the whole topology."""
        return {
            "shards": {
                shard_id: (state.host, sorted(state.tags))
                for shard_id, state in sorted(self.shards.items())
            },
            "databases": sorted(self.databases),
            "collections": dict(sorted(self.collections.items())),
            "ranges": {
                ns: [
                    (r.zone_label, format_bound(r.min_bound), format_bound(r.max_bound))
                    for r in ranges
                ]
                for ns, ranges in sorted(self.ranges.items())
            },
        }

    def close(self) -> None:
        pass
