"""Execution precondition checks applied before a periodic job fires."""

import socket
from typing import List

import psutil

from ..config.schema import SyncConstraints
from ..utils.logging import get_logger


class ConstraintChecker:
    """Evaluates :class:`SyncConstraints` against the local machine.

    Network connectivity is probed with a TCP connect; storage headroom is
    read with ``psutil``. Charging, idle and battery requirements are not
    observable here and are reported as unmet when requested.
    """

    def __init__(
        self,
        probe_host: str = "1.1.1.1",
        probe_port: int = 53,
        probe_timeout: float = 3.0,
        storage_path: str = "/",
        min_free_storage_mb: int = 100
    ):
        self.probe_host = probe_host
        self.probe_port = probe_port
        self.probe_timeout = probe_timeout
        self.storage_path = storage_path
        self.min_free_storage_bytes = min_free_storage_mb * 1024 * 1024
        self.logger = get_logger(self.__class__.__name__)

    def unmet(self, constraints: SyncConstraints) -> List[str]:
        """Return the names of the constraints that are currently not satisfied."""
        unmet = []

        if constraints.require_network and not self.is_network_available():
            unmet.append("network")
        if constraints.require_storage_not_low and not self.is_storage_not_low():
            unmet.append("storage_not_low")
        if constraints.require_charging:
            unmet.append("charging")
        if constraints.require_device_idle:
            unmet.append("device_idle")
        if constraints.require_battery_not_low:
            unmet.append("battery_not_low")

        return unmet

    def is_network_available(self) -> bool:
        sock = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            sock.settimeout(self.probe_timeout)
            sock.connect((self.probe_host, self.probe_port))
            return True
        except OSError as e:
            self.logger.debug(
                "Network probe failed",
                host=self.probe_host,
                port=self.probe_port,
                error=str(e)
            )
            return False
        finally:
            if sock is not None:
                sock.close()

    def is_storage_not_low(self) -> bool:
        disk = psutil.disk_usage(self.storage_path)
        return disk.free >= self.min_free_storage_bytes


class AlwaysSatisfied(ConstraintChecker):
    """Checker that treats every constraint as met."""

    def unmet(self, constraints: SyncConstraints) -> List[str]:
        return []
