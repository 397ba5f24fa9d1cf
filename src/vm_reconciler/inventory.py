"""Build control planes from the built-in default or a YAML inventory file."""

from pathlib import Path
from typing import Any

import structlog
import yaml

from .exceptions import InventoryError
from .hosts import HostRegistry
from .models import ActualVm, DesiredVm, Host, VmState
from .reconciler import ControlPlane

logger = structlog.get_logger()


def default_control_plane() -> ControlPlane:
    """One 8-core/16GB host and one 2-core/2GB VM that should be running."""
    hosts = HostRegistry([Host(id=1, total_cpu=8, total_memory_mb=16384)])
    desired = [DesiredVm(id=1, cpu=2, memory_mb=2048, target_state=VmState.RUNNING)]
    actual = [ActualVm(id=1)]
    return ControlPlane(desired_vms=desired, actual_vms=actual, hosts=hosts)


def load_inventory(path: Path) -> ControlPlane:
    """Load hosts and desired VMs from a YAML file.

    Every VM starts with a fresh Requested record.

    Raises:
        InventoryError: If the file is missing, unparsable or malformed
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise InventoryError(f"Cannot read inventory {path}: {e}") from e
    except yaml.YAMLError as e:
        raise InventoryError(f"Invalid YAML in {path}: {e}") from e

    control_plane = parse_inventory(data or {})
    logger.info(
        "Loaded inventory",
        path=str(path),
        hosts=len(control_plane.hosts),
        vms=len(control_plane.desired_vms),
    )
    return control_plane


def parse_inventory(data: dict[str, Any]) -> ControlPlane:
    """Build a control plane from already-parsed inventory data."""
    if not isinstance(data, dict):
        raise InventoryError("Inventory must be a mapping with 'hosts' and 'vms'")

    hosts = HostRegistry()
    for entry in _entries(data, "hosts"):
        try:
            hosts.add(
                Host(
                    id=_int(entry, "id"),
                    total_cpu=_int(entry, "total_cpu"),
                    total_memory_mb=_int(entry, "total_memory_mb"),
                    is_alive=_bool(entry, "is_alive", default=True),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InventoryError(f"Invalid host entry {entry!r}: {e}") from e

    desired_vms = []
    for entry in _entries(data, "vms"):
        try:
            desired_vms.append(
                DesiredVm(
                    id=_int(entry, "id"),
                    cpu=_int(entry, "cpu"),
                    memory_mb=_int(entry, "memory_mb"),
                    target_state=VmState.parse(str(entry.get("target_state", "running"))),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InventoryError(f"Invalid VM entry {entry!r}: {e}") from e

    return ControlPlane(
        desired_vms=desired_vms,
        actual_vms=[ActualVm(id=vm.id) for vm in desired_vms],
        hosts=hosts,
    )


def _entries(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    entries = data.get(key) or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise InventoryError(f"'{key}' must be a list of mappings")
    return entries


def _int(entry: dict[str, Any], key: str) -> int:
    # bool is an int subclass; "true" is not a size
    value = entry[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"'{key}' must be an integer, got {value!r}")
    return value


def _bool(entry: dict[str, Any], key: str, default: bool) -> bool:
    value = entry.get(key, default)
    if not isinstance(value, bool):
        raise TypeError(f"'{key}' must be true or false, got {value!r}")
    return value
