"""Action executor: applies planned actions to VM records and host accounting."""

import random
from typing import Protocol

import structlog

from .hosts import HostRegistry, reserve
from .models import Action, ActionKind, ActualVm, DesiredVm, VmState
from .state_machine import action_is_legal, can_transition

logger = structlog.get_logger()

DEFAULT_BOOT_FAILURE_PROBABILITY = 0.3


class RandomSource(Protocol):
    """Anything with a ``random()`` method returning a float in [0, 1)."""

    def random(self) -> float: ...


class Executor:
    """Applies one action at a time.

    Boot outcomes are drawn from ``rng``: a boot fails when ``rng.random()`` is
    below ``boot_failure_probability``. Pass a seeded ``random.Random`` (or any
    object with a ``random()`` method) to make outcomes reproducible.
    """

    def __init__(
        self,
        boot_failure_probability: float = DEFAULT_BOOT_FAILURE_PROBABILITY,
        rng: RandomSource | None = None,
    ) -> None:
        """Initialize executor."""
        if not 0.0 <= boot_failure_probability <= 1.0:
            raise ValueError(
                f"boot_failure_probability must be within [0, 1], got {boot_failure_probability}"
            )
        self.boot_failure_probability = boot_failure_probability
        self.rng = rng if rng is not None else random.Random()

    def apply(
        self,
        action: Action,
        actual: ActualVm,
        desired: DesiredVm,
        hosts: HostRegistry,
    ) -> VmState:
        """Apply ``action`` in place and return the VM's resulting state."""
        if not action_is_legal(action, actual.state):
            logger.warning(
                "Skipping action not permitted from current state",
                vm_id=actual.id,
                state=actual.state.value,
                action=action.describe(),
            )
            return actual.state

        if action.kind == ActionKind.ALLOCATE_HOST:
            self._allocate(action, actual, desired, hosts)
        elif action.kind == ActionKind.BOOT_VM:
            self._boot(actual)
        elif action.kind == ActionKind.STOP_VM:
            self._transition(actual, VmState.STOPPING)
            self._transition(actual, VmState.STOPPED)
        elif action.kind == ActionKind.RELEASE_RESOURCES:
            self._release(actual, hosts)

        return actual.state

    def _allocate(
        self,
        action: Action,
        actual: ActualVm,
        desired: DesiredVm,
        hosts: HostRegistry,
    ) -> None:
        if action.host_id is None:
            raise ValueError("allocate_host action requires a host_id")
        host = hosts.get(action.host_id)

        if actual.host_id is not None and actual.host_id != action.host_id:
            logger.info(
                "Moving reservation to another host",
                vm_id=actual.id,
                from_host_id=actual.host_id,
                to_host_id=action.host_id,
            )
            hosts.release(actual.host_id, actual.cpu, actual.memory_mb)
            actual.host_id = None
            actual.cpu = 0
            actual.memory_mb = 0

        if actual.host_id is None:
            reserve(host, desired.cpu, desired.memory_mb)
            actual.host_id = action.host_id
            actual.cpu = desired.cpu
            actual.memory_mb = desired.memory_mb
            logger.info(
                "Reserved resources",
                vm_id=actual.id,
                host_id=actual.host_id,
                cpu=actual.cpu,
                memory_mb=actual.memory_mb,
            )

        self._transition(actual, VmState.ALLOCATED)

    def _boot(self, actual: ActualVm) -> None:
        self._transition(actual, VmState.BOOTING)
        if self.rng.random() < self.boot_failure_probability:
            logger.warning("VM failed to boot", vm_id=actual.id, host_id=actual.host_id)
            self._transition(actual, VmState.FAILED)
        else:
            self._transition(actual, VmState.RUNNING)

    def _release(self, actual: ActualVm, hosts: HostRegistry) -> None:
        if actual.host_id is not None:
            hosts.release(actual.host_id, actual.cpu, actual.memory_mb)
            logger.info(
                "Released resources",
                vm_id=actual.id,
                host_id=actual.host_id,
                cpu=actual.cpu,
                memory_mb=actual.memory_mb,
            )
        actual.host_id = None
        actual.cpu = 0
        actual.memory_mb = 0
        actual.state = VmState.DESTROYED

    def _transition(self, actual: ActualVm, new_state: VmState) -> None:
        if not can_transition(actual.state, new_state):
            raise RuntimeError(
                f"VM {actual.id}: illegal transition {actual.state.value} -> {new_state.value}"
            )
        logger.debug(
            "State transition",
            vm_id=actual.id,
            from_state=actual.state.value,
            to_state=new_state.value,
        )
        actual.state = new_state


def apply(
    action: Action,
    actual: ActualVm,
    desired: DesiredVm,
    hosts: HostRegistry,
    executor: Executor | None = None,
) -> VmState:
    """Apply ``action`` with ``executor``, or a default one when not given."""
    return (executor or Executor()).apply(action, actual, desired, hosts)
