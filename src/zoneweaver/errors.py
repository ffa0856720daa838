"""Errors raised while applying a shard topology.

Every error is fatal to the run. The runner attaches the name of the step
that failed so the operator can fix the cause and re-run.
"""


class TopologyError(RuntimeError):
    """Base class for all topology initializer failures."""

    def __init__(self, message: str, step: str | None = None, operation=None):
        super().__init__(message)
        self.step = step
        self.operation = operation

    def __str__(self) -> str:
        message = super().__str__()
        if self.step:
            return f"[{self.step}] {message}"
        return message


class ClusterConnectionError(TopologyError):
    """The coordinator or a named shard endpoint could not be reached."""


class AlreadyExistsConflict(TopologyError):
    """An entity exists with a configuration incompatible with the topology."""


class RangeOverlapError(TopologyError):
    """Two zone key ranges on the same collection intersect."""


class OrderDependencyError(TopologyError):
    """A step ran before the cluster state it depends on was in place."""
