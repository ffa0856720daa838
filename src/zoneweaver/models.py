import re
from pathlib import Path
from typing import Any, Literal

from bson.json_util import object_hook
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .ranges import bound_key

ADDRESS_PATTERN = re.compile(r"^(?P<host>[^\s:/]+):(?P<port>\d{1,5})$")


class Shard(BaseModel):
    """A shard to register with the cluster coordinator."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1, description="Shard name")
    address: str = Field(description="Network address as host:port")
    replica_set: str | None = Field(
        default=None,
        alias="replicaSet",
        description="Replica set name backing the shard, if any",
    )

    @field_validator("address")
    @classmethod
    def check_address(cls, value: str) -> str:
        match = ADDRESS_PATTERN.match(value)
        if not match or not 0 < int(match["port"]) <= 65535:
            raise ValueError(f"address must be host:port, got {value!r}")
        return value

    @property
    def connection_string(self) -> str:
        """Host string passed to addShard, e.g. rsA/a.example:27017."""
        if self.replica_set:
            return f"{self.replica_set}/{self.address}"
        return self.address


class ZoneAssignment(BaseModel):
    """Tags one shard with a zone label."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    shard_id: str = Field(alias="shardId", min_length=1)
    zone_label: str = Field(alias="zoneLabel", min_length=1)


class Namespace(BaseModel):
    model_config = ConfigDict(frozen=True)

    database: str = Field(min_length=1)
    collection: str = Field(min_length=1)

    @field_validator("database")
    @classmethod
    def check_database(cls, value: str) -> str:
        if "." in value:
            raise ValueError("database name may not contain '.'")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.database}.{self.collection}"

    @classmethod
    def parse(cls, full_name: str) -> "Namespace":
        """Build a namespace from 'database.collection'."""
        database, sep, collection = full_name.partition(".")
        if not sep:
            raise ValueError(f"namespace must be database.collection, got {full_name!r}")
        return cls(database=database, collection=collection)


class ShardKeyField(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str = Field(min_length=1)
    direction: Literal[1, -1] = 1


class ZoneRange(BaseModel):
    """Maps the key interval [min_bound, max_bound) to a zone."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    zone_label: str = Field(alias="zoneLabel", min_length=1)
    min_bound: dict[str, Any] = Field(alias="minBound")
    max_bound: dict[str, Any] = Field(alias="maxBound")

    @field_validator("min_bound", "max_bound", mode="before")
    @classmethod
    def decode_extended_json(cls, value: Any) -> Any:
        # {"$minKey": 1} / {"$maxKey": 1} become bson MinKey / MaxKey
        if isinstance(value, dict):
            return {
                k: object_hook(v) if isinstance(v, dict) else v
                for k, v in value.items()
            }
        return value

    def same_as(self, other: "ZoneRange", fields: list[str]) -> bool:
        """True if both ranges cover the same interval for the same zone."""
        return (
            self.zone_label == other.zone_label
            and bound_key(self.min_bound, fields) == bound_key(other.min_bound, fields)
            and bound_key(self.max_bound, fields) == bound_key(other.max_bound, fields)
        )


class Topology(BaseModel):
    """Declarative description of a zone-sharded collection."""

    model_config = ConfigDict(populate_by_name=True)

    shards: list[Shard] = Field(min_length=1)
    zones: list[ZoneAssignment] = Field(default_factory=list)
    namespace: Namespace
    shard_key: list[ShardKeyField] = Field(alias="shardKey", min_length=1)
    ranges: list[ZoneRange] = Field(default_factory=list)

    @property
    def key_fields(self) -> list[str]:
        return [f.field for f in self.shard_key]

    @model_validator(mode="after")
    def check_references(self) -> "Topology":
        shard_ids = [s.id for s in self.shards]
        duplicates = {s for s in shard_ids if shard_ids.count(s) > 1}
        if duplicates:
            raise ValueError(f"duplicate shard ids: {sorted(duplicates)}")

        tagged = [z.shard_id for z in self.zones]
        unknown = sorted(set(tagged) - set(shard_ids))
        if unknown:
            raise ValueError(f"zone assignments reference unknown shards: {unknown}")
        retagged = {s for s in tagged if tagged.count(s) > 1}
        if retagged:
            raise ValueError(f"shards assigned to more than one zone: {sorted(retagged)}")

        fields = self.key_fields
        if len(set(fields)) != len(fields):
            raise ValueError("shard key fields must be unique")

        for zone_range in self.ranges:
            for bound in (zone_range.min_bound, zone_range.max_bound):
                if not bound or list(bound) != fields[: len(bound)]:
                    raise ValueError(
                        f"range bounds for {zone_range.zone_label} must use a prefix "
                        f"of the shard key {fields}, got {list(bound)}"
                    )
            if list(zone_range.min_bound) != list(zone_range.max_bound):
                raise ValueError(
                    f"range bounds for {zone_range.zone_label} must name the same fields"
                )
            if bound_key(zone_range.min_bound, fields) >= bound_key(
                zone_range.max_bound, fields
            ):
                raise ValueError(
                    f"range for {zone_range.zone_label} has min_bound >= max_bound"
                )
        return self

    @classmethod
    def load(cls, path: Path) -> "Topology":
        """Load and validate a topology from a JSON file."""
        return cls.model_validate_json(Path(path).read_text())
