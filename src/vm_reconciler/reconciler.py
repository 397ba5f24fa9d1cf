"""Level-triggered reconciliation loop over a control plane."""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from .config import Settings
from .exceptions import DuplicateIdError
from .executor import Executor
from .hosts import HostRegistry
from .models import ActualVm, DesiredVm, TickReport, VmTickResult
from .planner import plan

logger = structlog.get_logger()


@dataclass
class ControlPlane:
    """Desired VMs, their observed records and the host pool they run on."""

    desired_vms: list[DesiredVm] = field(default_factory=list)
    actual_vms: list[ActualVm] = field(default_factory=list)
    hosts: HostRegistry = field(default_factory=HostRegistry)

    def __post_init__(self) -> None:
        for label, ids in (
            ("desired VM", [vm.id for vm in self.desired_vms]),
            ("actual VM", [vm.id for vm in self.actual_vms]),
        ):
            seen: set[int] = set()
            for vm_id in ids:
                if vm_id in seen:
                    raise DuplicateIdError(f"Duplicate {label} id {vm_id}")
                seen.add(vm_id)

    def actual_for(self, vm_id: int) -> ActualVm | None:
        """Find the observed record for a VM id."""
        return next((vm for vm in self.actual_vms if vm.id == vm_id), None)

    def register(self, vm_id: int) -> ActualVm:
        """Create a fresh Requested record for ``vm_id``."""
        if self.actual_for(vm_id) is not None:
            raise DuplicateIdError(f"Duplicate actual VM id {vm_id}")
        actual = ActualVm(id=vm_id)
        self.actual_vms.append(actual)
        return actual


class Reconciler:
    """Plans and applies one step per desired VM on every tick."""

    def __init__(
        self,
        control_plane: ControlPlane,
        executor: Executor | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize reconciler."""
        self.control_plane = control_plane
        self.settings = settings or Settings()
        self.executor = executor or Executor(
            boot_failure_probability=self.settings.boot_failure_probability,
            rng=random.Random(self.settings.random_seed),
        )
        self.tick_count = 0

    def reconcile_vm(self, desired: DesiredVm, actual: ActualVm) -> VmTickResult:
        """Plan and apply the next step for one VM."""
        previous_state = actual.state
        action = plan(desired, actual, self.control_plane.hosts)
        self.executor.apply(action, actual, desired, self.control_plane.hosts)

        result = VmTickResult(
            vm_id=actual.id,
            action=action,
            previous_state=previous_state,
            state=actual.state,
            host_id=actual.host_id,
        )
        logger.info(
            "Reconciled VM",
            vm_id=actual.id,
            action=action.describe(),
            previous_state=previous_state.value,
            state=actual.state.value,
            host_id=actual.host_id,
        )
        return result

    def tick(self) -> TickReport:
        """Run one pass over every desired VM, in order."""
        self.tick_count += 1
        report = TickReport(tick=self.tick_count)

        for desired in self.control_plane.desired_vms:
            actual = self.control_plane.actual_for(desired.id)
            if actual is None:
                if not self.settings.auto_register:
                    logger.warning("No actual record for desired VM, skipping", vm_id=desired.id)
                    continue
                actual = self.control_plane.register(desired.id)
                logger.info("Registered new VM", vm_id=desired.id)
            report.results.append(self.reconcile_vm(desired, actual))

        if self.settings.verify_accounting:
            report.discrepancies = self.control_plane.hosts.audit(self.control_plane.actual_vms)
            for discrepancy in report.discrepancies:
                logger.error("Host accounting mismatch", detail=discrepancy.message)

        return report

    def run(
        self,
        max_ticks: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> TickReport | None:
        """Tick until ``max_ticks`` (or ``settings.max_ticks``) is reached, or forever.

        Returns the last report.
        """
        limit = max_ticks if max_ticks is not None else self.settings.max_ticks
        logger.info(
            "Starting reconciliation loop",
            vms=len(self.control_plane.desired_vms),
            hosts=len(self.control_plane.hosts),
            max_ticks=limit,
            interval_seconds=self.settings.tick_interval_seconds,
        )

        report = None
        ticks = 0
        while limit is None or ticks < limit:
            report = self.tick()
            ticks += 1
            if limit is not None and ticks >= limit:
                break
            sleep(self.settings.tick_interval_seconds)
        return report
