"""Exceptions raised by the VM reconciler."""


class ReconcilerError(Exception):
    """Base class for data-model inconsistencies the control loop cannot recover from."""


class UnknownHostError(ReconcilerError):
    """A VM or action references a host id that is not in the registry."""

    def __init__(self, host_id: int) -> None:
        super().__init__(f"Host {host_id} is not registered")
        self.host_id = host_id


class DuplicateIdError(ReconcilerError):
    """Two hosts or two VMs share the same id."""


class InventoryError(ReconcilerError):
    """Inventory file could not be parsed into hosts and VMs."""
