"""Shared state and EC2 lookups used by the cloud operations."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Mapping
from typing import Any, Optional

from ..devicemanager.manager import DeviceManager
from .errors import CloudError, MultiDisksError, MultiSnapshotsError, NotFoundError, is_aws_error
from .model import Snapshot, gib_to_bytes

Resource = Mapping[str, Any]


class CloudBase:
    """Holds the EC2 client, region, device manager and polling settings.

    ``ec2`` is an object exposing the EC2 operations with keyword arguments in
    the EC2 API shape, such as :class:`~ebscloud.cloud.ec2.EC2Client`.
    """

    volume_modification_duration = 1.0
    volume_modification_wait_factor = 1.7
    volume_modification_wait_steps = 10

    volume_attachment_state_poll_delay = 1.0
    volume_attachment_state_poll_factor = 1.8
    volume_attachment_state_poll_steps = 13

    def __init__(
        self,
        ec2: Any,
        region: str = "",
        device_manager: Optional[DeviceManager] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.ec2 = ec2
        self.region = region
        self.device_manager = device_manager if device_manager is not None else DeviceManager()
        self._sleep = sleep

    @staticmethod
    def _paginate(
        operation: Callable[..., Any], key: str, request: Mapping[str, Any]
    ) -> Iterator[Any]:
        params = dict(request)
        while True:
            response = operation(**params) or {}
            yield from response.get(key) or ()
            token = response.get("NextToken")
            if not token:
                return
            params["NextToken"] = token

    def _get_volume(self, **request: Any) -> Resource:
        volumes = list(self._paginate(self.ec2.describe_volumes, "Volumes", request))
        if len(volumes) > 1:
            raise MultiDisksError()
        if not volumes:
            raise NotFoundError()
        return volumes[0]

    def _get_instance(self, node_id: str) -> Resource:
        try:
            instances = [
                instance
                for reservation in self._paginate(
                    self.ec2.describe_instances, "Reservations", {"InstanceIds": [node_id]}
                )
                for instance in reservation.get("Instances") or ()
            ]
        except Exception as exc:
            if is_aws_error(exc, "InvalidInstanceID.NotFound"):
                raise NotFoundError() from exc
            raise CloudError(f"error listing AWS instances: {exc}") from exc

        if len(instances) > 1:
            raise CloudError(f"found {len(instances)} instances with ID {node_id!r}")
        if not instances:
            raise NotFoundError()
        return instances[0]

    def _get_snapshot(self, **request: Any) -> Resource:
        snapshots = list(self._paginate(self.ec2.describe_snapshots, "Snapshots", request))
        if len(snapshots) > 1:
            raise MultiSnapshotsError()
        if not snapshots:
            raise NotFoundError()
        return snapshots[0]

    @staticmethod
    def _snapshot_from_ec2(ec2_snapshot: Optional[Resource]) -> Optional[Snapshot]:
        if ec2_snapshot is None:
            return None
        return Snapshot(
            snapshot_id=ec2_snapshot.get("SnapshotId") or "",
            source_volume_id=ec2_snapshot.get("VolumeId") or "",
            size=gib_to_bytes(ec2_snapshot.get("VolumeSize") or 0),
            creation_time=ec2_snapshot.get("StartTime"),
            ready_to_use=ec2_snapshot.get("State") == "completed",
        )