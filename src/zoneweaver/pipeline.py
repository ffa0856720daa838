"""
Topology initializer operations.

Builds the ordered list of administrative operations for a topology and runs
it against a cluster coordinator, one blocking step at a time. Each step first
reads the cluster state so that re-running a finished or half-finished plan
skips what is already in place instead of failing on it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .db import ClusterAdmin
from .errors import (
    AlreadyExistsConflict,
    OrderDependencyError,
    RangeOverlapError,
    TopologyError,
)
from .models import Namespace, Shard, Topology, ZoneRange
from .operations import (
    STEP_ORDER,
    AssignZoneRange,
    EnableSharding,
    Operation,
    RegisterShard,
    ShardCollection,
    TagShard,
)
from .ranges import bound_key, find_overlap, overlaps

APPLIED = "applied"
SKIPPED = "skipped"


@dataclass
class StepResult:
    operation: Operation
    status: str


@dataclass
class TopologyReport:
    results: list[StepResult] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return sum(1 for r in self.results if r.status == APPLIED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.status == SKIPPED)


def build_plan(topology: Topology) -> list[Operation]:
    """
    Build the ordered operation list for a topology.

    Shards are registered and tagged in the order given, then the database
    and collection are sharded, then zone ranges are assigned in key order.

    Args:
        topology: Validated topology description

    Returns:
        List of operations, ready for run_plan

    Raises:
        RangeOverlapError: if two of the topology's ranges intersect
    """
    fields = topology.key_fields
    overlap = find_overlap(topology.ranges, fields)
    if overlap:
        first, second = overlap
        raise RangeOverlapError(
            f"Zone ranges for {first.zone_label} and {second.zone_label} overlap",
            step=AssignZoneRange.step,
        )

    ns = topology.namespace
    plan: list[Operation] = [RegisterShard(shard=s) for s in topology.shards]
    plan += [TagShard(shard_id=z.shard_id, zone_label=z.zone_label) for z in topology.zones]
    plan.append(EnableSharding(database=ns.database))
    plan.append(ShardCollection(namespace=ns, key=topology.shard_key))
    plan += [
        AssignZoneRange(
            namespace=ns,
            min_bound=r.min_bound,
            max_bound=r.max_bound,
            zone_label=r.zone_label,
        )
        for r in sorted(topology.ranges, key=lambda r: bound_key(r.min_bound, fields))
    ]
    return plan


def _same_host(registered: str, shard: Shard) -> bool:
    if registered == shard.connection_string:
        return True
    # config.shards lists every replica set member: "rsA/a1:27017,a2:27017"
    set_name, sep, members = registered.partition("/")
    if not sep or set_name != shard.replica_set:
        return False
    return shard.address in members.split(",")


def _register_shard(client: ClusterAdmin, op: RegisterShard) -> bool:
    existing = client.list_shards().get(op.shard.id)
    if existing is not None:
        if _same_host(existing.host, op.shard):
            return False
        raise AlreadyExistsConflict(
            f"Shard {op.shard.id} is registered at {existing.host}, "
            f"not {op.shard.connection_string}"
        )
    client.add_shard(op.shard)
    return True


def _tag_shard(client: ClusterAdmin, op: TagShard) -> bool:
    state = client.list_shards().get(op.shard_id)
    if state is None:
        raise OrderDependencyError(f"Shard {op.shard_id} is not registered")
    if op.zone_label in state.tags:
        return False
    if state.tags:
        raise AlreadyExistsConflict(
            f"Shard {op.shard_id} is already in zone {', '.join(sorted(state.tags))}"
        )
    client.add_shard_to_zone(op.shard_id, op.zone_label)
    return True


def _enable_sharding(client: ClusterAdmin, op: EnableSharding) -> bool:
    if client.is_sharding_enabled(op.database):
        return False
    client.enable_sharding(op.database)
    return True


def _shard_collection(client: ClusterAdmin, op: ShardCollection) -> bool:
    if not client.is_sharding_enabled(op.namespace.database):
        raise OrderDependencyError(
            f"Sharding is not enabled on database {op.namespace.database}"
        )
    wanted = [(f.field, f.direction) for f in op.key]
    existing = client.collection_key(op.namespace)
    if existing is None:
        client.shard_collection(op.namespace, op.key)
        return True
    if existing == wanted:
        return False
    raise AlreadyExistsConflict(
        f"{op.namespace.full_name} is already sharded on {dict(existing)}, not {dict(wanted)}"
    )


def _assign_zone_range(client: ClusterAdmin, op: AssignZoneRange) -> bool:
    key = client.collection_key(op.namespace)
    if key is None:
        raise OrderDependencyError(f"{op.namespace.full_name} is not sharded")
    if not any(op.zone_label in s.tags for s in client.list_shards().values()):
        raise OrderDependencyError(f"No shard is tagged with zone {op.zone_label}")

    fields = [name for name, _ in key]
    wanted = ZoneRange(
        zone_label=op.zone_label, min_bound=op.min_bound, max_bound=op.max_bound
    )
    try:
        low, high = bound_key(wanted.min_bound, fields), bound_key(wanted.max_bound, fields)
        for existing in client.zone_ranges(op.namespace):
            if existing.same_as(wanted, fields):
                return False
            if overlaps(
                low,
                high,
                bound_key(existing.min_bound, fields),
                bound_key(existing.max_bound, fields),
            ):
                raise RangeOverlapError(
                    f"Range for zone {op.zone_label} overlaps the existing range "
                    f"for zone {existing.zone_label}"
                )
    except ValueError as e:
        raise TopologyError(
            f"Cannot compare zone ranges of {op.namespace.full_name}: {e}"
        ) from e
    client.update_zone_key_range(op.namespace, op.min_bound, op.max_bound, op.zone_label)
    return True


_HANDLERS: dict[type, Callable[[ClusterAdmin, Any], bool]] = {
    RegisterShard: _register_shard,
    TagShard: _tag_shard,
    EnableSharding: _enable_sharding,
    ShardCollection: _shard_collection,
    AssignZoneRange: _assign_zone_range,
}


def run_plan(client: ClusterAdmin, operations: list[Operation]) -> TopologyReport:
    """
    Apply operations in order, stopping at the first failure.

    Args:
        client: Cluster coordinator to run against
        operations: Operations as produced by build_plan

    Returns:
        TopologyReport with one result per operation

    Raises:
        TopologyError: the first failure, tagged with its step and operation.
            Nothing is retried or rolled back.
    """
    report = TopologyReport()
    last_stage = 0
    for operation in operations:
        stage = STEP_ORDER.index(operation.step)
        try:
            if stage < last_stage:
                raise OrderDependencyError(
                    f"{operation.step} cannot run after {STEP_ORDER[last_stage]}"
                )
            last_stage = stage
            applied = _HANDLERS[type(operation)](client, operation)
        except TopologyError as e:
            e.step = e.step or operation.step
            e.operation = operation
            logging.error(f"Step {operation.step} failed: {operation.describe()}: {e}")
            raise

        status = APPLIED if applied else SKIPPED
        logging.info(f"{operation.step}: {status} ({operation.describe()})")
        report.results.append(StepResult(operation=operation, status=status))

    logging.info(
        f"Topology complete. {report.applied_count} applied, {report.skipped_count} skipped."
    )
    return report


def initialize_topology(topology: Topology, client: ClusterAdmin) -> TopologyReport:
    """Build the plan for a topology and run it against the cluster."""
    logging.info(
        f"Initializing topology for {topology.namespace.full_name} "
        f"with {len(topology.shards)} shards"
    )
    return run_plan(client, build_plan(topology))


def cluster_status(
    client: ClusterAdmin, namespace: Optional[Namespace] = None
) -> dict[str, Any]:
    """
    Read the current topology from the cluster.

    Returns:
        Dict with keys:
        - shards: {shard_id: {"host": ..., "zones": [...]}}
        - key: shard key pairs of the namespace, or None
        - ranges: zone ranges of the namespace
    """
    status: dict[str, Any] = {
        "shards": {
            shard_id: {"host": state.host, "zones": sorted(state.tags)}
            for shard_id, state in sorted(client.list_shards().items())
        },
        "key": None,
        "ranges": [],
    }
    if namespace is not None:
        status["key"] = client.collection_key(namespace)
        status["ranges"] = client.zone_ranges(namespace)
    return status
