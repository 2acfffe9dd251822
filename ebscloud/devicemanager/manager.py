"""Tracking of device names assigned to volumes on instances.

Instances are mappings in the EC2 response shape: an ``InstanceId`` key and a
``BlockDeviceMappings`` list whose items carry ``DeviceName`` and
``Ebs.VolumeId``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, Optional

from .allocator import NameAllocator, NoDeviceNameError

DEV_PREFIX = "/dev/xvd"

log = logging.getLogger(__name__)

Instance = Mapping[str, Any]


class DeviceError(Exception):
    """Raised when a device cannot be assigned or released."""


def _instance_id(instance: Optional[Instance]) -> str:
    if instance is None:
        raise DeviceError("can't get ID from a missing instance")
    return instance.get("InstanceId") or ""


class Device:
    """A device path assigned to a volume on an instance."""

    def __init__(
        self,
        instance: Optional[Instance],
        path: str,
        volume_id: str,
        is_already_assigned: bool,
        releaser: Callable[["Device"], None],
    ) -> None:
        self.instance = instance
        self.path = path
        self.volume_id = volume_id
        self.is_already_assigned = is_already_assigned
        self._tainted = False
        self._releaser = releaser

    def __repr__(self) -> str:
        return (
            f"Device(path={self.path!r}, volume_id={self.volume_id!r}, "
            f"is_already_assigned={self.is_already_assigned!r})"
        )

    def release(self, force: bool = False) -> None:
        """Free the in-flight reservation unless the device is tainted and not forced."""
        if self._tainted and not force:
            return
        try:
            self._releaser(self)
        except DeviceError:
            log.exception("Error releasing device")

    def taint(self) -> None:
        """Mark the device as no longer reusable."""
        self._tainted = True


class DeviceManager:
    """Assigns device names, remembering names reserved but not yet attached."""

    def __init__(self, allocator: Optional[NameAllocator] = None) -> None:
        self._allocator = allocator or NameAllocator()
        self._lock = threading.Lock()
        # node ID -> {device name -> volume ID}
        self._in_flight: dict[str, dict[str, str]] = {}

    def new_device(self, instance: Optional[Instance], volume_id: str) -> Device:
        """Return the device already assigned to the volume, or reserve a new one."""
        with self._lock:
            if instance is None:
                raise DeviceError("instance is missing")

            in_use = self._names_in_use(instance)
            path = self._path_for(in_use, volume_id)
            if path:
                return self._device(instance, volume_id, path, True)

            node_id = _instance_id(instance)
            try:
                name = self._allocator.get_next(in_use, DEV_PREFIX)
            except NoDeviceNameError as exc:
                raise DeviceError(
                    f"could not get a free device name to assign to node {node_id}"
                ) from exc

            self._in_flight.setdefault(node_id, {})[name] = volume_id
            return self._device(instance, volume_id, name, False)

    def get_device(self, instance: Optional[Instance], volume_id: str) -> Device:
        """Return the device assigned to the volume, with an empty path if there is none."""
        with self._lock:
            if instance is None:
                raise DeviceError("instance is missing")
            path = self._path_for(self._names_in_use(instance), volume_id)
            if path:
                return self._device(instance, volume_id, path, True)
            return self._device(instance, volume_id, "", False)

    def _device(self, instance: Instance, volume_id: str, path: str, assigned: bool) -> Device:
        return Device(instance, path, volume_id, assigned, self._release)

    def _release(self, device: Device) -> None:
        node_id = _instance_id(device.instance)
        with self._lock:
            attaching = self._in_flight.get(node_id, {})
            existing_volume_id = attaching.get(device.path, "")
            if not existing_volume_id:
                return
            if device.volume_id != existing_volume_id:
                raise DeviceError(
                    f"release on device {device.path!r} assigned to different volume: "
                    f"{device.volume_id!r} vs {existing_volume_id!r}"
                )
            log.debug(
                "Releasing in-process attachment entry %s for volume %s",
                device.path,
                device.volume_id,
            )
            del attaching[device.path]
            if not attaching:
                del self._in_flight[node_id]

    def _names_in_use(self, instance: Instance) -> dict[str, str]:
        node_id = instance.get("InstanceId") or ""
        in_use = {
            mapping.get("DeviceName") or "": (mapping.get("Ebs") or {}).get("VolumeId") or ""
            for mapping in instance.get("BlockDeviceMappings") or ()
        }
        in_use.update(self._in_flight.get(node_id, {}))
        return in_use

    @staticmethod
    def _path_for(in_use: Mapping[str, str], volume_id: str) -> str:
        return next((name for name, vol in in_use.items() if vol == volume_id), "")