"""Action planner: decides the single next step for one VM."""

from collections.abc import Iterable

import structlog

from .hosts import find_placement
from .models import Action, ActualVm, DesiredVm, Host, NoOpReason, VmState
from .state_machine import action_is_legal

logger = structlog.get_logger()


def plan(desired: DesiredVm, actual: ActualVm, hosts: Iterable[Host]) -> Action:
    """Compute the next action that moves ``actual`` toward ``desired.target_state``.

    Rules, first match wins:
    1. Already at target: converged.
    2. Requested, or Failed with a Running target: place on a host.
    3. Allocated with a Running target: boot.
    4. Running with a Stopped target: stop.
    5. Destroyed target from any other state: release resources.
    6. Anything else: unreachable.

    At most one lifecycle step is planned per call, however far away the target is.
    """
    target = desired.target_state

    if actual.state == target:
        return Action.noop(NoOpReason.CONVERGED)

    if actual.state == VmState.REQUESTED or (
        actual.state == VmState.FAILED and target == VmState.RUNNING
    ):
        return _plan_allocation(desired, actual, hosts)

    if actual.state == VmState.ALLOCATED and target == VmState.RUNNING:
        return _checked(Action.boot_vm(), desired, actual)

    if actual.state == VmState.RUNNING and target == VmState.STOPPED:
        return _checked(Action.stop_vm(), desired, actual)

    if target == VmState.DESTROYED:
        return Action.release_resources()

    return _unreachable(desired, actual)


def _plan_allocation(desired: DesiredVm, actual: ActualVm, hosts: Iterable[Host]) -> Action:
    hosts = list(hosts)

    # A VM that failed to boot keeps its reservation and retries on the same host
    # while that host is alive. Otherwise it is placed again from scratch.
    if actual.host_id is not None:
        current = next((host for host in hosts if host.id == actual.host_id), None)
        if current is None or current.is_alive:
            return _checked(Action.allocate_host(actual.host_id), desired, actual)
        logger.info(
            "Reserved host is down, placing VM elsewhere",
            vm_id=actual.id,
            host_id=actual.host_id,
        )

    host_id = find_placement(hosts, desired)
    if host_id is None:
        logger.info(
            "No host has capacity, VM stays pending",
            vm_id=actual.id,
            state=actual.state.value,
            cpu=desired.cpu,
            memory_mb=desired.memory_mb,
        )
        return Action.noop(NoOpReason.PLACEMENT_PENDING)

    return _checked(Action.allocate_host(host_id), desired, actual)


def _checked(action: Action, desired: DesiredVm, actual: ActualVm) -> Action:
    if action_is_legal(action, actual.state):
        return action
    return _unreachable(desired, actual)


def _unreachable(desired: DesiredVm, actual: ActualVm) -> Action:
    logger.warning(
        "Unable to move VM toward desired state",
        vm_id=actual.id,
        state=actual.state.value,
        target_state=desired.target_state.value,
    )
    return Action.noop(NoOpReason.UNREACHABLE)
