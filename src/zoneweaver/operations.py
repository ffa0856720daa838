"""The ordered administrative operations that build a zone topology."""

from typing import Annotated, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .models import Namespace, Shard, ShardKeyField
from .ranges import format_bound


class _Operation(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: ClassVar[str]

    def describe(self) -> str: ...


class RegisterShard(_Operation):
    kind: Literal["register_shard"] = "register_shard"
    step: ClassVar[str] = "registerShard"

    shard: Shard

    def describe(self) -> str:
        return f"register shard {self.shard.id} at {self.shard.connection_string}"


class TagShard(_Operation):
    kind: Literal["tag_shard"] = "tag_shard"
    step: ClassVar[str] = "tagShard"

    shard_id: str
    zone_label: str

    def describe(self) -> str:
        return f"tag shard {self.shard_id} with zone {self.zone_label}"


class EnableSharding(_Operation):
    kind: Literal["enable_sharding"] = "enable_sharding"
    step: ClassVar[str] = "enableSharding"

    database: str

    def describe(self) -> str:
        return f"enable sharding on database {self.database}"


class ShardCollection(_Operation):
    kind: Literal["shard_collection"] = "shard_collection"
    step: ClassVar[str] = "shardCollection"

    namespace: Namespace
    key: list[ShardKeyField]

    def describe(self) -> str:
        key = ", ".join(f"{f.field}: {f.direction}" for f in self.key)
        return f"shard collection {self.namespace.full_name} on {{{key}}}"


class AssignZoneRange(_Operation):
    kind: Literal["assign_zone_range"] = "assign_zone_range"
    step: ClassVar[str] = "assignZoneRange"

    namespace: Namespace
    min_bound: dict
    max_bound: dict
    zone_label: str

    def describe(self) -> str:
        return (
            f"assign {self.namespace.full_name} range "
            f"[{format_bound(self.min_bound)}, {format_bound(self.max_bound)}) "
            f"to zone {self.zone_label}"
        )


Operation = Annotated[
    Union[RegisterShard, TagShard, EnableSharding, ShardCollection, AssignZoneRange],
    Field(discriminator="kind"),
]

STEP_ORDER = [
    RegisterShard.step,
    TagShard.step,
    EnableSharding.step,
    ShardCollection.step,
    AssignZoneRange.step,
]
