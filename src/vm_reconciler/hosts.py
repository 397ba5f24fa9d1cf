"""Host registry: capacity checks, first-fit placement and resource accounting."""

from collections.abc import Iterable, Iterator

import structlog

from .exceptions import DuplicateIdError, UnknownHostError
from .models import AccountingDiscrepancy, ActualVm, DesiredVm, Host

logger = structlog.get_logger()


def has_capacity(host: Host, desired: DesiredVm) -> bool:
    """Check if a live host has enough free CPU and memory for ``desired``."""
    return (
        host.is_alive
        and host.free_cpu >= desired.cpu
        and host.free_memory_mb >= desired.memory_mb
    )


def find_placement(hosts: Iterable[Host], desired: DesiredVm) -> int | None:
    """Return the id of the first host that can fit ``desired``, or None.

    First-fit in iteration order: the same inventory always yields the same host.
    """
    for host in hosts:
        if has_capacity(host, desired):
            return host.id
    return None


def reserve(host: Host, cpu: int, memory_mb: int) -> None:
    """Add ``cpu``/``memory_mb`` to the host's usage.

    Does not re-check capacity; callers pair this with ``has_capacity`` in the
    same tick.
    """
    host.used_cpu += cpu
    host.used_memory_mb += memory_mb


def release(host: Host, cpu: int, memory_mb: int) -> bool:
    """Return ``cpu``/``memory_mb`` to the host.

    Usage is clamped at zero. Returns False (and logs) if the release would have
    underflowed, which means the bookkeeping was already wrong.
    """
    consistent = host.used_cpu >= cpu and host.used_memory_mb >= memory_mb
    if not consistent:
        logger.error(
            "Resource accounting underflow on release",
            host_id=host.id,
            used_cpu=host.used_cpu,
            release_cpu=cpu,
            used_memory_mb=host.used_memory_mb,
            release_memory_mb=memory_mb,
        )
    host.used_cpu = max(0, host.used_cpu - cpu)
    host.used_memory_mb = max(0, host.used_memory_mb - memory_mb)
    return consistent


class HostRegistry:
    """Ordered collection of hosts keyed by id."""

    def __init__(self, hosts: Iterable[Host] = ()) -> None:
        """Initialize registry, preserving insertion order."""
        self._hosts: dict[int, Host] = {}
        for host in hosts:
            self.add(host)

    def add(self, host: Host) -> None:
        """Register a host. Ids must be unique."""
        if host.id in self._hosts:
            raise DuplicateIdError(f"Host {host.id} is already registered")
        self._hosts[host.id] = host

    def get(self, host_id: int) -> Host:
        """Look up a host, failing loudly if it does not exist."""
        try:
            return self._hosts[host_id]
        except KeyError:
            raise UnknownHostError(host_id) from None

    def __contains__(self, host_id: object) -> bool:
        """Check if a host id is registered."""
        return host_id in self._hosts

    def __iter__(self) -> Iterator[Host]:
        """Iterate hosts in insertion order."""
        return iter(self._hosts.values())

    def __len__(self) -> int:
        return len(self._hosts)

    def has_capacity(self, host_id: int, desired: DesiredVm) -> bool:
        """Check if host ``host_id`` can fit ``desired``."""
        return has_capacity(self.get(host_id), desired)

    def find_placement(self, desired: DesiredVm) -> int | None:
        """Return the first registered host that can fit ``desired``."""
        return find_placement(self, desired)

    def reserve(self, host_id: int, cpu: int, memory_mb: int) -> None:
        """Reserve resources on host ``host_id``."""
        reserve(self.get(host_id), cpu, memory_mb)

    def release(self, host_id: int, cpu: int, memory_mb: int) -> bool:
        """Release resources on host ``host_id``; False on underflow."""
        return release(self.get(host_id), cpu, memory_mb)

    def audit(self, actual_vms: Iterable[ActualVm]) -> list[AccountingDiscrepancy]:
        """Compare recorded host usage against the VMs that reference each host.

        Raises UnknownHostError if a VM points at a host that is not registered.
        """
        expected: dict[int, tuple[int, int]] = {host_id: (0, 0) for host_id in self._hosts}
        for vm in actual_vms:
            if vm.host_id is None:
                continue
            if vm.host_id not in self._hosts:
                raise UnknownHostError(vm.host_id)
            cpu, memory_mb = expected[vm.host_id]
            expected[vm.host_id] = (cpu + vm.cpu, memory_mb + vm.memory_mb)

        discrepancies = []
        for host in self:
            cpu, memory_mb = expected[host.id]
            if host.used_cpu != cpu or host.used_memory_mb != memory_mb:
                discrepancies.append(
                    AccountingDiscrepancy(
                        host_id=host.id,
                        recorded_cpu=host.used_cpu,
                        expected_cpu=cpu,
                        recorded_memory_mb=host.used_memory_mb,
                        expected_memory_mb=memory_mb,
                    )
                )
        return discrepancies
