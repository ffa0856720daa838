import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from bson.son import SON
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

from .config import COORDINATOR_URI, SERVER_SELECTION_TIMEOUT_MS
from .errors import ClusterConnectionError, TopologyError
from .models import Namespace, Shard, ShardKeyField, ZoneRange

logger = logging.getLogger(__name__)

# HostUnreachable, HostNotFound, NetworkTimeout, FailedToSatisfyReadPreference, SocketException
UNREACHABLE_CODES = {6, 7, 89, 133, 9001}

# OperationFailed: addShard could not connect to the new shard
ADD_SHARD_UNREACHABLE_CODE = 96

# ordered (field, direction) pairs; direction may also be "hashed" on a live cluster
KeyPairs = list[tuple[str, Any]]


@dataclass
class ShardState:
    host: str
    tags: set[str] = field(default_factory=set)


class ClusterAdmin(Protocol):
    """Administrative surface of a sharded cluster coordinator."""

    def list_shards(self) -> dict[str, ShardState]: ...

    def is_sharding_enabled(self, database: str) -> bool: ...

    def collection_key(self, namespace: Namespace) -> Optional[KeyPairs]: ...

    def zone_ranges(self, namespace: Namespace) -> list[ZoneRange]: ...

    def add_shard(self, shard: Shard) -> None: ...

    def add_shard_to_zone(self, shard_id: str, zone_label: str) -> None: ...

    def enable_sharding(self, database: str) -> None: ...

    def shard_collection(self, namespace: Namespace, key: list[ShardKeyField]) -> None: ...

    def update_zone_key_range(
        self, namespace: Namespace, min_bound: dict, max_bound: dict, zone_label: str
    ) -> None: ...

    def close(self) -> None: ...


def key_document(key: list[ShardKeyField]) -> SON:
    """Shard key as an ordered document, e.g. SON([('region', 1), ('id', 1)])."""
    return SON((f.field, f.direction) for f in key)


class MongoClusterAdmin:
    """ClusterAdmin backed by a mongos router.

    Reads come from the config database, writes go through admin commands.
    """

    def __init__(self, client: MongoClient):
        self.client = client

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def _config(self):
        return self.client["config"]

    def _command(self, command_name: str, value: Any, **fields) -> dict:
        command = SON([(command_name, value)])
        command.update(fields)
        logger.debug(f"Running admin command: {command}")
        try:
            return self.client.admin.command(command)
        except ConnectionFailure as e:
            raise ClusterConnectionError(
                f"{command_name} failed, coordinator unreachable: {e}"
            ) from e
        except OperationFailure as e:
            if e.code in UNREACHABLE_CODES or (
                command_name == "addShard" and e.code == ADD_SHARD_UNREACHABLE_CODE
            ):
                raise ClusterConnectionError(f"{command_name} failed: {e}") from e
            raise TopologyError(f"{command_name} failed: {e}") from e

    def _read(self, collection: str, query: dict) -> list[dict]:
        try:
            return list(self._config[collection].find(query))
        except PyMongoError as e:
            raise ClusterConnectionError(
                f"Could not read config.{collection}: {e}"
            ) from e

    def list_shards(self) -> dict[str, ShardState]:
        return {
            d["_id"]: ShardState(host=d["host"], tags=set(d.get("tags", [])))
            for d in self._read("shards", {})
        }

    def is_sharding_enabled(self, database: str) -> bool:
        docs = self._read("databases", {"_id": database})
        # "partitioned" was dropped in 6.0, where every database is shardable once it exists
        return bool(docs) and docs[0].get("partitioned", True)

    def collection_key(self, namespace: Namespace) -> Optional[KeyPairs]:
        docs = self._read(
            "collections", {"_id": namespace.full_name, "dropped": {"$ne": True}}
        )
        if not docs:
            return None
        return [
            (name, int(direction) if isinstance(direction, float) else direction)
            for name, direction in docs[0]["key"].items()
        ]

    def zone_ranges(self, namespace: Namespace) -> list[ZoneRange]:
        docs = self._read("tags", {"ns": namespace.full_name})
        return [
            ZoneRange(zone_label=d["tag"], min_bound=dict(d["min"]), max_bound=dict(d["max"]))
            for d in docs
        ]

    def add_shard(self, shard: Shard) -> None:
        self._command("addShard", shard.connection_string, name=shard.id)

    def add_shard_to_zone(self, shard_id: str, zone_label: str) -> None:
        self._command("addShardToZone", shard_id, zone=zone_label)

    def enable_sharding(self, database: str) -> None:
        self._command("enableSharding", database)

    def shard_collection(self, namespace: Namespace, key: list[ShardKeyField]) -> None:
        self._command("shardCollection", namespace.full_name, key=key_document(key))

    def update_zone_key_range(
        self, namespace: Namespace, min_bound: dict, max_bound: dict, zone_label: str
    ) -> None:
        self._command(
            "updateZoneKeyRange",
            namespace.full_name,
            min=min_bound,
            max=max_bound,
            zone=zone_label,
        )

    def close(self) -> None:
        self.client.close()


def connect(
    uri: str = COORDINATOR_URI, timeout_ms: int = SERVER_SELECTION_TIMEOUT_MS
) -> MongoClusterAdmin:
    """Connect to a cluster coordinator and verify it answers."""
    client = None
    try:
        client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms, document_class=SON)
        client.admin.command("ping")
    except PyMongoError as e:
        if client is not None:
            client.close()
        raise ClusterConnectionError(
            f"Cannot reach coordinator at {uri}: {e}", step="connect"
        ) from e
    logger.info(f"Connected to coordinator at {uri}")
    return MongoClusterAdmin(client)
