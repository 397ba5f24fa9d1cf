"""Data models for the VM reconciler."""

from dataclasses import dataclass, field
from enum import Enum


class VmState(Enum):
    """Lifecycle state of a VM."""

    REQUESTED = "requested"
    ALLOCATED = "allocated"
    BOOTING = "booting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DESTROYED = "destroyed"
    FAILED = "failed"

    @classmethod
    def parse(cls, name: str) -> "VmState":
        """Look up a state by name or value, ignoring case."""
        key = name.strip().lower()
        for state in cls:
            if state.value == key:
                return state
        raise ValueError(f"Unknown VM state: {name!r}")


@dataclass(frozen=True)
class DesiredVm:
    """Declared configuration for a VM. Read-only to the reconciler."""

    id: int
    cpu: int
    memory_mb: int
    target_state: VmState

    def __post_init__(self) -> None:
        if self.cpu <= 0:
            raise ValueError(f"VM {self.id}: cpu must be positive, got {self.cpu}")
        if self.memory_mb <= 0:
            raise ValueError(f"VM {self.id}: memory_mb must be positive, got {self.memory_mb}")


@dataclass
class ActualVm:
    """Observed record of a VM, mutated only by the executor.

    ``cpu`` and ``memory_mb`` are the amounts reserved on ``host_id``; both are
    zero whenever ``host_id`` is None.
    """

    id: int
    state: VmState = VmState.REQUESTED
    host_id: int | None = None
    cpu: int = 0
    memory_mb: int = 0

    @property
    def has_reservation(self) -> bool:
        """Check if the VM currently holds resources on a host."""
        return self.host_id is not None


@dataclass
class Host:
    """A compute host with finite CPU and memory."""

    id: int
    total_cpu: int
    total_memory_mb: int
    used_cpu: int = 0
    used_memory_mb: int = 0
    is_alive: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.used_cpu <= self.total_cpu:
            raise ValueError(
                f"Host {self.id}: used_cpu {self.used_cpu} outside [0, {self.total_cpu}]"
            )
        if not 0 <= self.used_memory_mb <= self.total_memory_mb:
            raise ValueError(
                f"Host {self.id}: used_memory_mb {self.used_memory_mb} "
                f"outside [0, {self.total_memory_mb}]"
            )

    @property
    def free_cpu(self) -> int:
        """Get CPU cores not yet reserved."""
        return self.total_cpu - self.used_cpu

    @property
    def free_memory_mb(self) -> int:
        """Get memory in MB not yet reserved."""
        return self.total_memory_mb - self.used_memory_mb


class ActionKind(Enum):
    """Kinds of step the planner can emit."""

    ALLOCATE_HOST = "allocate_host"
    BOOT_VM = "boot_vm"
    STOP_VM = "stop_vm"
    RELEASE_RESOURCES = "release_resources"
    NOOP = "noop"


class NoOpReason(Enum):
    """Why the planner chose not to act."""

    CONVERGED = "converged"
    PLACEMENT_PENDING = "placement_pending"  # no host has capacity yet, retried next tick
    UNREACHABLE = "unreachable"  # no rule leads from the current state to the target


@dataclass(frozen=True)
class Action:
    """A single reconciliation step for one VM."""

    kind: ActionKind
    host_id: int | None = None
    reason: NoOpReason | None = None

    @classmethod
    def allocate_host(cls, host_id: int) -> "Action":
        """Create an action placing the VM on ``host_id``."""
        return cls(ActionKind.ALLOCATE_HOST, host_id=host_id)

    @classmethod
    def boot_vm(cls) -> "Action":
        """Create an action booting an allocated VM."""
        return cls(ActionKind.BOOT_VM)

    @classmethod
    def stop_vm(cls) -> "Action":
        """Create an action stopping a running VM."""
        return cls(ActionKind.STOP_VM)

    @classmethod
    def release_resources(cls) -> "Action":
        """Create a teardown action."""
        return cls(ActionKind.RELEASE_RESOURCES)

    @classmethod
    def noop(cls, reason: NoOpReason) -> "Action":
        """Create a no-op carrying ``reason``."""
        return cls(ActionKind.NOOP, reason=reason)

    @property
    def is_noop(self) -> bool:
        """Check if the action leaves the VM untouched."""
        return self.kind == ActionKind.NOOP

    def describe(self) -> str:
        """Human-readable form used in logs and CLI output."""
        if self.kind == ActionKind.ALLOCATE_HOST:
            return f"allocate_host(host={self.host_id})"
        if self.kind == ActionKind.NOOP and self.reason is not None:
            return f"noop({self.reason.value})"
        return self.kind.value


@dataclass(frozen=True)
class AccountingDiscrepancy:
    """Mismatch between a host's recorded usage and the VMs that reference it."""

    host_id: int
    recorded_cpu: int
    expected_cpu: int
    recorded_memory_mb: int
    expected_memory_mb: int

    @property
    def message(self) -> str:
        """Get a one-line description for logs."""
        return (
            f"host {self.host_id}: cpu {self.recorded_cpu} (expected {self.expected_cpu}), "
            f"memory {self.recorded_memory_mb}MB (expected {self.expected_memory_mb}MB)"
        )


@dataclass(frozen=True)
class VmTickResult:
    """What happened to one VM during a tick."""

    vm_id: int
    action: Action
    previous_state: VmState
    state: VmState
    host_id: int | None = None

    @property
    def changed(self) -> bool:
        """Check if the VM changed state during the tick."""
        return self.previous_state != self.state


@dataclass
class TickReport:
    """Outcome of one reconciliation pass."""

    tick: int
    results: list[VmTickResult] = field(default_factory=list)
    discrepancies: list[AccountingDiscrepancy] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        """Check if at least one VM was reconciled and every VM is at its target state."""
        return bool(self.results) and all(
            result.action.reason == NoOpReason.CONVERGED for result in self.results
        )
