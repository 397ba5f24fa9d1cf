"""VM lifecycle transition graph."""

from collections.abc import Mapping
from types import MappingProxyType

from .models import Action, ActionKind, VmState

TRANSITIONS: Mapping[VmState, frozenset[VmState]] = MappingProxyType(
    {
        VmState.REQUESTED: frozenset({VmState.ALLOCATED, VmState.FAILED}),
        VmState.ALLOCATED: frozenset({VmState.BOOTING, VmState.FAILED}),
        VmState.BOOTING: frozenset({VmState.RUNNING, VmState.FAILED}),
        VmState.RUNNING: frozenset({VmState.STOPPING, VmState.FAILED}),
        VmState.STOPPING: frozenset({VmState.STOPPED, VmState.FAILED}),
        VmState.STOPPED: frozenset({VmState.DESTROYED, VmState.FAILED}),
        VmState.FAILED: frozenset({VmState.ALLOCATED, VmState.FAILED}),
        VmState.DESTROYED: frozenset(),
    }
)

# First state an action moves a VM into. ReleaseResources is teardown and is
# allowed from any state, so it has no entry here.
ACTION_ENTRY_STATES: Mapping[ActionKind, VmState] = MappingProxyType(
    {
        ActionKind.ALLOCATE_HOST: VmState.ALLOCATED,
        ActionKind.BOOT_VM: VmState.BOOTING,
        ActionKind.STOP_VM: VmState.STOPPING,
    }
)


def allowed_transitions(state: VmState) -> frozenset[VmState]:
    """Return the states reachable in one step from ``state``."""
    return TRANSITIONS[state]


def can_transition(source: VmState, target: VmState) -> bool:
    """Check if ``source -> target`` is an edge of the transition graph."""
    return target in TRANSITIONS[source]


def is_terminal(state: VmState) -> bool:
    """Check if no transition leaves ``state``."""
    return not TRANSITIONS[state]


def action_is_legal(action: Action, state: VmState) -> bool:
    """Check if ``action`` may be applied to a VM currently in ``state``."""
    entry_state = ACTION_ENTRY_STATES.get(action.kind)
    if entry_state is None:
        return True
    return can_transition(state, entry_state)
