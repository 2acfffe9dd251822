"""Volume expansion and waiting for volume modifications."""

from __future__ import annotations

import logging
from typing import Any

from .base import CloudBase, Resource
from .errors import CloudError, VolumeNotBeingModifiedError, is_aws_error
from .model import round_up_gib
from .wait import exponential_backoff

log = logging.getLogger(__name__)

MODIFICATION_STATE_MODIFYING = "modifying"
MODIFICATION_STATE_OPTIMIZING = "optimizing"
MODIFICATION_STATE_COMPLETED = "completed"


def _modification_done(state: str) -> bool:
    return state in (MODIFICATION_STATE_COMPLETED, MODIFICATION_STATE_OPTIMIZING)


class ResizeOperations(CloudBase):
    """Expansion of EBS volumes."""

    def resize_disk(self, volume_id: str, new_size_bytes: int) -> int:
        """Grow the volume to hold ``new_size_bytes`` and return its size in GiB."""
        volume = self._get_volume(VolumeIds=[volume_id])

        new_size_gib = round_up_gib(new_size_bytes)
        old_size_gib = volume.get("Size") or 0

        try:
            latest = self._latest_volume_modification(volume_id)
        except VolumeNotBeingModifiedError:
            latest = None
        except CloudError as exc:
            raise CloudError(
                f"error fetching volume modifications for {volume_id!r}: {exc}"
            ) from exc

        if latest is not None and latest.get("ModificationState") == MODIFICATION_STATE_MODIFYING:
            self._wait_for_volume_size(volume_id)
            return self._check_desired_size(volume_id, new_size_gib)

        # Even when the volume is already large enough, make sure any earlier
        # modification has finished.
        if old_size_gib >= new_size_gib:
            log.debug(
                "Volume %s already has %d GiB, requested %d GiB",
                volume_id, old_size_gib, new_size_gib,
            )
            try:
                self._wait_for_volume_size(volume_id)
            except VolumeNotBeingModifiedError:
                pass
            return old_size_gib

        log.info("expanding volume %s to %d GiB", volume_id, new_size_gib)
        try:
            response = self.ec2.modify_volume(VolumeId=volume_id, Size=new_size_gib)
        except Exception as exc:
            raise CloudError(f"could not modify AWS volume {volume_id!r}: {exc}") from exc

        modification = (response or {}).get("VolumeModification") or {}
        if _modification_done(modification.get("ModificationState") or ""):
            return self._check_desired_size(volume_id, new_size_gib)

        self._wait_for_volume_size(volume_id)
        return self._check_desired_size(volume_id, new_size_gib)

    def _check_desired_size(self, volume_id: str, new_size_gib: int) -> int:
        # Reading the volume itself guards against stale modification records.
        volume = self._get_volume(VolumeIds=[volume_id])
        size_gib = volume.get("Size") or 0
        if size_gib >= new_size_gib:
            return size_gib
        raise CloudError(f"volume {volume_id!r} is still being expanded to {new_size_gib} size")

    def _wait_for_volume_size(self, volume_id: str) -> None:
        def done() -> bool:
            modification = self._latest_volume_modification(volume_id)
            return _modification_done(modification.get("ModificationState") or "")

        exponential_backoff(
            self.volume_modification_duration,
            self.volume_modification_wait_factor,
            self.volume_modification_wait_steps,
            done,
            sleep=self._sleep,
        )

    def _latest_volume_modification(self, volume_id: str) -> Resource:
        try:
            response: Any = self.ec2.describe_volumes_modifications(VolumeIds=[volume_id])
        except Exception as exc:
            if is_aws_error(exc, "InvalidVolumeModification.NotFound"):
                raise VolumeNotBeingModifiedError() from exc
            raise CloudError(
                f"error describing modifications in volume {volume_id!r}: {exc}"
            ) from exc

        modifications = (response or {}).get("VolumesModifications") or []
        if not modifications:
            raise VolumeNotBeingModifiedError()
        return modifications[-1]