"""EBS volume provisioning, attachment and lookup on EC2."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping
from typing import Any, Optional

from .base import Resource
from .ec2 import tag_list
from .errors import (
    CloudError,
    DiskExistsDiffSizeError,
    IdempotentParameterMismatchError,
    NotFoundError,
    VolumeInUseError,
    is_aws_error,
)
from .model import (
    GP3_MAX_IOPS_PER_GB,
    GP3_MAX_TOTAL_IOPS,
    GP3_MIN_TOTAL_IOPS,
    IO1_MAX_IOPS_PER_GB,
    IO1_MAX_TOTAL_IOPS,
    IO1_MIN_TOTAL_IOPS,
    IO2_BLOCK_EXPRESS_MAX_TOTAL_IOPS,
    IO2_MAX_IOPS_PER_GB,
    IO2_MAX_TOTAL_IOPS,
    IO2_MIN_TOTAL_IOPS,
    VOLUME_NAME_TAG_KEY,
    VOLUME_TYPE_GP2,
    VOLUME_TYPE_GP3,
    VOLUME_TYPE_IO1,
    VOLUME_TYPE_IO2,
    VOLUME_TYPE_SBG1,
    VOLUME_TYPE_SBP1,
    VOLUME_TYPE_SC1,
    VOLUME_TYPE_ST1,
    VOLUME_TYPE_STANDARD,
    Disk,
    DiskOptions,
    bytes_to_gib,
    cap_iops,
    is_sbe,
)
from .resize import ResizeOperations
from .snapshots import SnapshotOperations
from .wait import exponential_backoff, poll

log = logging.getLogger(__name__)

VOLUME_ATTACHED_STATE = "attached"
VOLUME_DETACHED_STATE = "detached"

_UNLIMITED_TYPES = frozenset(
    {
        VOLUME_TYPE_GP2,
        VOLUME_TYPE_SC1,
        VOLUME_TYPE_ST1,
        VOLUME_TYPE_SBG1,
        VOLUME_TYPE_SBP1,
        VOLUME_TYPE_STANDARD,
    }
)


def _attached_instances(volume: Mapping[str, Any]) -> list[str]:
    return [
        attachment.get("InstanceId") or ""
        for attachment in volume.get("Attachments") or ()
        if attachment.get("State") is not None
        and str(attachment["State"]).lower() == VOLUME_ATTACHED_STATE
    ]


class Cloud(SnapshotOperations, ResizeOperations):
    """All EBS operations: volumes, attachments, snapshots and resizing."""

    volume_available_poll_interval = 3.0
    volume_available_poll_timeout = 60.0

    def create_disk(self, volume_name: str, disk_options: DiskOptions) -> Disk:
        """Create a volume, wait until it is available and return it."""
        capacity_gib = bytes_to_gib(disk_options.capacity_bytes)

        if disk_options.iops > 0 and disk_options.iops_per_gb > 0:
            raise CloudError(
                "invalid StorageClass parameters; specify either IOPS or IOPSPerGb, not both"
            )

        create_type = disk_options.volume_type or VOLUME_TYPE_GP3
        max_iops = min_iops = max_iops_per_gb = 0
        throughput = 0
        if create_type in _UNLIMITED_TYPES:
            pass
        elif create_type == VOLUME_TYPE_IO1:
            max_iops, min_iops, max_iops_per_gb = (
                IO1_MAX_TOTAL_IOPS, IO1_MIN_TOTAL_IOPS, IO1_MAX_IOPS_PER_GB,
            )
        elif create_type == VOLUME_TYPE_IO2:
            max_iops = (
                IO2_BLOCK_EXPRESS_MAX_TOTAL_IOPS if disk_options.block_express
                else IO2_MAX_TOTAL_IOPS
            )
            min_iops, max_iops_per_gb = IO2_MIN_TOTAL_IOPS, IO2_MAX_IOPS_PER_GB
        elif create_type == VOLUME_TYPE_GP3:
            max_iops, min_iops, max_iops_per_gb = (
                GP3_MAX_TOTAL_IOPS, GP3_MIN_TOTAL_IOPS, GP3_MAX_IOPS_PER_GB,
            )
            throughput = disk_options.throughput
        else:
            raise CloudError(f'invalid AWS VolumeType "{disk_options.volume_type}"')

        iops = 0
        if max_iops > 0:
            requested_iops = 0
            if disk_options.iops > 0:
                requested_iops = disk_options.iops
            elif disk_options.iops_per_gb > 0:
                requested_iops = disk_options.iops_per_gb * capacity_gib
            try:
                iops = cap_iops(
                    create_type, capacity_gib, requested_iops, min_iops, max_iops,
                    max_iops_per_gb, disk_options.allow_iops_per_gb_increase,
                )
            except ValueError as exc:
                raise CloudError(str(exc)) from exc

        tags = tag_list(disk_options.tags)

        zone = disk_options.availability_zone
        if not zone:
            try:
                zone = self._random_availability_zone()
            except Exception as exc:
                raise CloudError(f"failed to get availability zone {exc}") from exc
            log.debug("AZ is not provided. Using node AZ %s", zone)

        # The hashed name is a stable idempotency token of at most 64 characters.
        client_token = hashlib.sha256(volume_name.encode()).hexdigest()

        request: dict[str, Any] = {
            "AvailabilityZone": zone,
            "ClientToken": client_token,
            "Size": capacity_gib,
            "VolumeType": create_type,
            "Encrypted": disk_options.encrypted,
        }
        if not is_sbe(zone):
            request["TagSpecifications"] = [{"ResourceType": "volume", "Tags": tags}]
        if disk_options.outpost_arn:
            request["OutpostArn"] = disk_options.outpost_arn
        if disk_options.kms_key_id:
            request["KmsKeyId"] = disk_options.kms_key_id
            request["Encrypted"] = True
        if iops > 0:
            request["Iops"] = iops
        if throughput > 0 and disk_options.volume_type == VOLUME_TYPE_GP3:
            request["Throughput"] = throughput
        snapshot_id = disk_options.snapshot_id
        if snapshot_id:
            request["SnapshotId"] = snapshot_id

        try:
            response = self.ec2.create_volume(**request) or {}
        except Exception as exc:
            if is_aws_error(exc, "InvalidSnapshot.NotFound"):
                raise NotFoundError() from exc
            if is_aws_error(exc, "IdempotentParameterMismatch"):
                raise IdempotentParameterMismatchError() from exc
            raise CloudError(f"could not create volume in EC2: {exc}") from exc

        volume_id = response.get("VolumeId") or ""
        if not volume_id:
            raise CloudError("volume ID was not returned by CreateVolume")
        size = response.get("Size") or 0
        if size == 0:
            raise CloudError("disk size was not returned by CreateVolume")

        try:
            self._wait_for_volume(volume_id)
        except Exception as exc:
            self._delete_leaked_volume(volume_id, "it is not in desired state within retry limit")
            raise CloudError(f"failed to get an available volume in EC2: {exc}") from exc

        if is_sbe(zone):
            try:
                self.ec2.create_tags(Resources=[volume_id], Tags=tags)
            except Exception as exc:
                self._delete_leaked_volume(volume_id, "attaching the tags failed")
                raise CloudError(f"could not attach tags to volume: {volume_id}. {exc}") from exc

        return Disk(
            volume_id=volume_id,
            capacity_gib=size,
            availability_zone=zone,
            snapshot_id=snapshot_id,
            outpost_arn=response.get("OutpostArn") or "",
        )

    def delete_disk(self, volume_id: str) -> bool:
        """Delete the volume; raises NotFoundError if it does not exist."""
        try:
            self.ec2.delete_volume(VolumeId=volume_id)
        except Exception as exc:
            if is_aws_error(exc, "InvalidVolume.NotFound"):
                raise NotFoundError() from exc
            raise CloudError(f"DeleteDisk could not delete volume: {exc}") from exc
        return True

    def attach_disk(self, volume_id: str, node_id: str) -> str:
        """Attach the volume to the instance and return the device path."""
        instance = self._get_instance(node_id)
        instance_id = instance.get("InstanceId") or ""
        device = self.device_manager.new_device(instance, volume_id)
        try:
            if not device.is_already_assigned:
                try:
                    response = self.ec2.attach_volume(
                        Device=device.path, InstanceId=node_id, VolumeId=volume_id
                    )
                except Exception as exc:
                    if is_aws_error(exc, "VolumeInUse"):
                        raise VolumeInUseError() from exc
                    raise CloudError(
                        f'could not attach volume "{volume_id}" to node "{node_id}": {exc}'
                    ) from exc
                log.debug("AttachVolume %s to %s: %s", volume_id, node_id, response)

            try:
                attachment = self.wait_for_attachment_state(
                    volume_id, VOLUME_ATTACHED_STATE, instance_id, device.path,
                    device.is_already_assigned,
                )
            except Exception:
                # The only situation in which the device name is not reused.
                device.taint()
                raise

            # Make sure the attachment seen is ours and not a stale one.
            if attachment is None:
                raise CloudError(
                    f'unexpected state: attachment missing after attached "{volume_id}" '
                    f'to "{node_id}"'
                )
            found_device = attachment.get("Device") or ""
            if device.path != found_device:
                raise CloudError(
                    f'disk attachment of "{volume_id}" to "{node_id}" failed: requested '
                    f'device "{device.path}" but found "{found_device}"'
                )
            found_instance = attachment.get("InstanceId") or ""
            if instance_id != found_instance:
                raise CloudError(
                    f'disk attachment of "{volume_id}" to "{node_id}" failed: requested '
                    f'instance "{instance_id}" but found "{found_instance}"'
                )
            return device.path
        finally:
            device.release(False)

    def detach_disk(self, volume_id: str, node_id: str) -> None:
        """Detach the volume from the instance and wait until it is detached."""
        instance = self._get_instance(node_id)
        device = self.device_manager.get_device(instance, volume_id)
        try:
            if not device.is_already_assigned:
                log.info("DetachDisk: called on non-attached volume %s", volume_id)
            try:
                self.ec2.detach_volume(InstanceId=node_id, VolumeId=volume_id)
            except Exception as exc:
                if any(
                    is_aws_error(exc, code)
                    for code in (
                        "IncorrectState", "InvalidAttachment.NotFound", "InvalidVolume.NotFound",
                    )
                ):
                    raise NotFoundError() from exc
                raise CloudError(
                    f'could not detach volume "{volume_id}" from node "{node_id}": {exc}'
                ) from exc

            attachment = self.wait_for_attachment_state(
                volume_id, VOLUME_DETACHED_STATE, instance.get("InstanceId") or "", "", False
            )
            if attachment is not None:
                log.info("waiting for detach returned an attachment: %s", attachment)
        finally:
            device.release(True)

    def wait_for_attachment_state(
        self,
        volume_id: str,
        expected_state: str,
        expected_instance: str = "",
        expected_device: str = "",
        already_assigned: bool = False,
    ) -> Optional[Resource]:
        """Poll until the volume's attachment reaches ``expected_state`` and return it.

        Returns None once a volume is detached. Raises WaitTimeoutError when the
        state is not reached within the allowed attempts.
        """
        attachment: Optional[Resource] = None

        def verify() -> bool:
            nonlocal attachment
            try:
                volume = self._get_volume(VolumeIds=[volume_id])
            except Exception as exc:
                if is_aws_error(exc, "InvalidVolume.NotFound"):
                    if expected_state == VOLUME_DETACHED_STATE:
                        log.info(
                            "Waiting for volume %s to be detached but it does not exist",
                            volume_id,
                        )
                        return True
                    if expected_state == VOLUME_ATTACHED_STATE:
                        log.info(
                            "Waiting for volume %s to be attached but it does not exist",
                            volume_id,
                        )
                        raise
                log.info("Ignoring error from describe volume %s, will retry: %s", volume_id, exc)
                return False

            attachments = volume.get("Attachments") or []
            if len(attachments) > 1:
                log.info("Found multiple attachments for volume %s: %s", volume_id, volume)
            state = ""
            for candidate in attachments:
                if candidate.get("State") is not None:
                    attachment = candidate
                    state = candidate["State"]
                else:
                    log.info("Ignoring missing attachment state for volume %s", volume_id)
            if not state:
                state = VOLUME_DETACHED_STATE

            if attachment is not None:
                # Eventual consistency can report an earlier attachment; retry then.
                device = attachment.get("Device") or ""
                if expected_device and device and device != expected_device:
                    log.info(
                        "Expected device %s for volume %s (state %s) but found %s",
                        expected_device, volume_id, state, device,
                    )
                    return False
                instance_id = attachment.get("InstanceId") or ""
                if expected_instance and instance_id and instance_id != expected_instance:
                    log.info(
                        "Expected instance %s for volume %s (state %s) but found %s",
                        expected_instance, volume_id, state, instance_id,
                    )
                    return False

            if expected_state == VOLUME_ATTACHED_STATE and already_assigned and state != expected_state:
                raise CloudError(
                    f'attachment of disk "{volume_id}" failed, expected device to be '
                    f"attached but was {state}"
                )

            if state == expected_state:
                if expected_state == VOLUME_DETACHED_STATE:
                    attachment = None
                return True
            log.debug("Waiting for volume %s state: %s, desired %s", volume_id, state, expected_state)
            return False

        exponential_backoff(
            self.volume_attachment_state_poll_delay,
            self.volume_attachment_state_poll_factor,
            self.volume_attachment_state_poll_steps,
            verify,
            sleep=self._sleep,
        )
        return attachment

    def get_disk_by_name(self, name: str, capacity_bytes: int) -> Disk:
        """Return the volume tagged with ``name``; its size must match ``capacity_bytes``."""
        volume = self._get_volume(
            Filters=[{"Name": "tag:" + VOLUME_NAME_TAG_KEY, "Values": [name]}]
        )
        size = volume.get("Size") or 0
        if size != bytes_to_gib(capacity_bytes):
            raise DiskExistsDiffSizeError()
        return Disk(
            volume_id=volume.get("VolumeId") or "",
            capacity_gib=size,
            availability_zone=volume.get("AvailabilityZone") or "",
            snapshot_id=volume.get("SnapshotId") or "",
            outpost_arn=volume.get("OutpostArn") or "",
        )

    def get_disk_by_id(self, volume_id: str) -> Disk:
        """Return the volume with the given ID and the instances it is attached to."""
        volume = self._get_volume(VolumeIds=[volume_id])
        return Disk(
            volume_id=volume.get("VolumeId") or "",
            capacity_gib=volume.get("Size") or 0,
            availability_zone=volume.get("AvailabilityZone") or "",
            outpost_arn=volume.get("OutpostArn") or "",
            attachments=_attached_instances(volume),
        )

    def is_exist_instance(self, node_id: str) -> bool:
        """Whether an instance with the given ID can be found."""
        try:
            return bool(self._get_instance(node_id))
        except Exception:
            return False

    def availability_zones(self) -> set[str]:
        """Names of the availability zones of the region."""
        try:
            response = self.ec2.describe_availability_zones() or {}
        except Exception as exc:
            raise CloudError(f"error describing availability zones: {exc}") from exc
        return {zone["ZoneName"] for zone in response.get("AvailabilityZones") or ()}

    def _random_availability_zone(self) -> str:
        response = self.ec2.describe_availability_zones() or {}
        zones = [zone["ZoneName"] for zone in response.get("AvailabilityZones") or ()]
        if not zones:
            raise CloudError("no availability zones found")
        return zones[0]

    def _wait_for_volume(self, volume_id: str) -> None:
        elapsed = 0.0

        def sleep(seconds: float) -> None:
            nonlocal elapsed
            elapsed += seconds
            self._sleep(seconds)

        def available() -> bool:
            volume = self._get_volume(VolumeIds=[volume_id])
            return volume.get("State") == "available"

        poll(
            self.volume_available_poll_interval,
            self.volume_available_poll_timeout,
            available,
            sleep=sleep,
            clock=lambda: elapsed,
        )

    def _delete_leaked_volume(self, volume_id: str, reason: str) -> None:
        try:
            self.delete_disk(volume_id)
        except Exception:
            log.exception("volume %s failed to be deleted, this may cause volume leak", volume_id)
        else:
            log.debug("volume %s is deleted because %s", volume_id, reason)