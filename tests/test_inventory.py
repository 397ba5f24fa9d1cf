"""Tests for inventory loading."""

from pathlib import Path

import pytest

from vm_reconciler.exceptions import DuplicateIdError, InventoryError
from vm_reconciler.inventory import default_control_plane, load_inventory, parse_inventory
from vm_reconciler.models import ActualVm, VmState

INVENTORY_YAML = """
hosts:
  - id: 1
    total_cpu: 8
    total_memory_mb: 16384
  - id: 2
    total_cpu: 4
    total_memory_mb: 8192
    is_alive: false
vms:
  - id: 10
    cpu: 2
    memory_mb: 2048
    target_state: Running
  - id: 11
    cpu: 1
    memory_mb: 512
    target_state: stopped
"""


class TestDefaultControlPlane:
    def test_contents(self) -> None:
        """Test the built-in inventory: one host, one VM heading for Running."""
        control_plane = default_control_plane()

        [host] = list(control_plane.hosts)
        assert (host.id, host.total_cpu, host.total_memory_mb) == (1, 8, 16384)
        assert host.is_alive is True
        assert host.used_cpu == 0

        [desired] = control_plane.desired_vms
        assert (desired.cpu, desired.memory_mb) == (2, 2048)
        assert desired.target_state is VmState.RUNNING
        assert control_plane.actual_vms == [ActualVm(id=1)]


class TestLoadInventory:
    """Tests for YAML inventory loading."""

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "inventory.yaml"
        path.write_text(INVENTORY_YAML)

        control_plane = load_inventory(path)

        assert [h.id for h in control_plane.hosts] == [1, 2]
        assert control_plane.hosts.get(2).is_alive is False
        assert [vm.target_state for vm in control_plane.desired_vms] == [
            VmState.RUNNING,
            VmState.STOPPED,
        ]
        assert control_plane.actual_vms == [ActualVm(id=10), ActualVm(id=11)]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(InventoryError, match="Cannot read"):
            load_inventory(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("hosts: [unclosed")
        with pytest.raises(InventoryError, match="Invalid YAML"):
            load_inventory(path)

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        control_plane = load_inventory(path)
        assert len(control_plane.hosts) == 0
        assert control_plane.desired_vms == []


class TestParseInventory:
    """Tests for inventory validation."""

    def test_missing_host_field(self) -> None:
        with pytest.raises(InventoryError, match="Invalid host entry"):
            parse_inventory({"hosts": [{"id": 1, "total_cpu": 8}]})

    def test_unknown_state(self) -> None:
        data = {"vms": [{"id": 1, "cpu": 1, "memory_mb": 512, "target_state": "paused"}]}
        with pytest.raises(InventoryError, match="Invalid VM entry"):
            parse_inventory(data)

    def test_non_positive_cpu(self) -> None:
        data = {"vms": [{"id": 1, "cpu": 0, "memory_mb": 512}]}
        with pytest.raises(InventoryError, match="Invalid VM entry"):
            parse_inventory(data)

    def test_fractional_cpu_rejected(self) -> None:
        data = {"vms": [{"id": 1, "cpu": 2.5, "memory_mb": 512}]}
        with pytest.raises(InventoryError, match="'cpu' must be an integer"):
            parse_inventory(data)

    def test_boolean_size_rejected(self) -> None:
        data = {"hosts": [{"id": 1, "total_cpu": True, "total_memory_mb": 1024}]}
        with pytest.raises(InventoryError, match="'total_cpu' must be an integer"):
            parse_inventory(data)

    def test_quoted_liveness_rejected(self) -> None:
        """Test a quoted "false" is not silently read as a live host."""
        data = {"hosts": [{"id": 1, "total_cpu": 8, "total_memory_mb": 1024, "is_alive": "false"}]}
        with pytest.raises(InventoryError, match="'is_alive' must be true or false"):
            parse_inventory(data)

    def test_target_defaults_to_running(self) -> None:
        control_plane = parse_inventory({"vms": [{"id": 1, "cpu": 1, "memory_mb": 512}]})
        assert control_plane.desired_vms[0].target_state is VmState.RUNNING

    def test_hosts_must_be_list(self) -> None:
        with pytest.raises(InventoryError, match="'hosts' must be a list"):
            parse_inventory({"hosts": {"id": 1}})

    def test_not_a_mapping(self) -> None:
        with pytest.raises(InventoryError, match="must be a mapping"):
            parse_inventory(["hosts"])  # type: ignore[arg-type]

    def test_duplicate_host(self) -> None:
        host = {"id": 1, "total_cpu": 1, "total_memory_mb": 1}
        with pytest.raises(DuplicateIdError):
            parse_inventory({"hosts": [host, host]})

    def test_duplicate_vm(self) -> None:
        vm = {"id": 1, "cpu": 1, "memory_mb": 512}
        with pytest.raises(DuplicateIdError):
            parse_inventory({"vms": [vm, vm]})


def test_example_inventory_loads() -> None:
    """Test the sample inventory shipped with the repository."""
    path = Path(__file__).resolve().parents[1] / "inventory.example.yaml"
    control_plane = load_inventory(path)
    assert len(control_plane.hosts) == 3
    assert [vm.id for vm in control_plane.desired_vms] == [1, 2, 3, 4]
