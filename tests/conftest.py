"""Pytest fixtures for VM reconciler tests."""

import pytest

from vm_reconciler.config import Settings
from vm_reconciler.executor import Executor
from vm_reconciler.hosts import HostRegistry
from vm_reconciler.models import ActualVm, DesiredVm, Host, VmState
from vm_reconciler.reconciler import ControlPlane


class FixedRandom:
    """RNG stand-in that always returns the same value."""

    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        boot_failure_probability=0.3,
        tick_interval_seconds=0.01,
        auto_register=True,
        verify_accounting=True,
    )


@pytest.fixture
def boot_succeeds() -> Executor:
    """Executor whose boots always succeed."""
    return Executor(boot_failure_probability=0.3, rng=FixedRandom(0.99))


@pytest.fixture
def boot_fails() -> Executor:
    """Executor whose boots always fail."""
    return Executor(boot_failure_probability=0.3, rng=FixedRandom(0.0))


@pytest.fixture
def host() -> Host:
    """Create an empty 8-core/16GB host."""
    return Host(id=1, total_cpu=8, total_memory_mb=16384)


@pytest.fixture
def registry(host: Host) -> HostRegistry:
    """Create a registry holding the single default host."""
    return HostRegistry([host])


@pytest.fixture
def desired_running() -> DesiredVm:
    """Create a 2-core/2GB VM that should be running."""
    return DesiredVm(id=1, cpu=2, memory_mb=2048, target_state=VmState.RUNNING)


@pytest.fixture
def requested_vm() -> ActualVm:
    """Create a freshly requested VM record."""
    return ActualVm(id=1)


@pytest.fixture
def running_vm(registry: HostRegistry) -> ActualVm:
    """Create a running VM already holding 2 CPU/2048MB on host 1."""
    registry.reserve(1, 2, 2048)
    return ActualVm(id=1, state=VmState.RUNNING, host_id=1, cpu=2, memory_mb=2048)


@pytest.fixture
def control_plane(
    registry: HostRegistry, desired_running: DesiredVm, requested_vm: ActualVm
) -> ControlPlane:
    """Create a control plane with one host and one requested VM."""
    return ControlPlane(
        desired_vms=[desired_running],
        actual_vms=[requested_vm],
        hosts=registry,
    )


@pytest.fixture
def executor_with():
    """Factory for executors whose RNG always returns ``value``."""

    def _make(value: float, probability: float = 0.3) -> Executor:
        return Executor(boot_failure_probability=probability, rng=FixedRandom(value))

    return _make
