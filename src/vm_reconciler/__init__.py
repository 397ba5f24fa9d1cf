"""VM Reconciler: desired-state control loop for virtual machines on a host pool."""

__version__ = "0.1.0"
