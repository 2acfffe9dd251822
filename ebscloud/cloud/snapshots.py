"""Snapshot creation, lookup, listing and fast restore."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Optional

from .base import CloudBase
from .ec2 import tag_list
from .errors import CloudError, InvalidMaxResultsError, NotFoundError, is_aws_error
from .model import SNAPSHOT_NAME_TAG_KEY, ListSnapshotsResponse, Snapshot, SnapshotOptions


class _FastSnapshotRestoresError(CloudError):
    """Some zones failed to enable fast snapshot restores; ``response`` holds the reply."""

    def __init__(self, message: str, response: Any) -> None:
        super().__init__(message)
        self.response = response


class SnapshotOperations(CloudBase):
    """Operations on EBS snapshots."""

    def create_snapshot(self, volume_id: str, snapshot_options: SnapshotOptions) -> Snapshot:
        """Create a snapshot of the volume carrying the given tags."""
        request = {
            "VolumeId": volume_id,
            "DryRun": False,
            "TagSpecifications": [
                {"ResourceType": "snapshot", "Tags": tag_list(snapshot_options.tags)}
            ],
            "Description": "Created by AWS EBS CSI driver for volume " + volume_id,
        }
        try:
            response = self.ec2.create_snapshot(**request)
        except Exception as exc:
            raise CloudError(f"error creating snapshot of volume {volume_id}: {exc}") from exc
        if response is None:
            raise CloudError("missing CreateSnapshot response")
        return self._snapshot_from_ec2(response)

    def delete_snapshot(self, snapshot_id: str) -> bool:
        """Delete the snapshot; raises NotFoundError if it does not exist."""
        try:
            self.ec2.delete_snapshot(SnapshotId=snapshot_id, DryRun=False)
        except Exception as exc:
            if is_aws_error(exc, "InvalidSnapshot.NotFound"):
                raise NotFoundError() from exc
            raise CloudError(f"DeleteSnapshot could not delete volume: {exc}") from exc
        return True

    def get_snapshot_by_name(self, name: str) -> Snapshot:
        """Return the single snapshot tagged with the given name."""
        ec2_snapshot = self._get_snapshot(
            Filters=[{"Name": "tag:" + SNAPSHOT_NAME_TAG_KEY, "Values": [name]}]
        )
        return self._snapshot_from_ec2(ec2_snapshot)

    def get_snapshot_by_id(self, snapshot_id: str) -> Snapshot:
        """Return the snapshot with the given ID."""
        ec2_snapshot = self._get_snapshot(SnapshotIds=[snapshot_id])
        return self._snapshot_from_ec2(ec2_snapshot)

    def list_snapshots(
        self, volume_id: str = "", max_results: int = 0, next_token: str = ""
    ) -> ListSnapshotsResponse:
        """Return one page of snapshots, optionally only those of ``volume_id``.

        ``max_results`` of 0 leaves the page size to EC2; 1 to 4 is rejected.
        Raises NotFoundError when the page is empty.
        """
        if 0 < max_results < 5:
            raise InvalidMaxResultsError()

        request: dict[str, Any] = {}
        if max_results:
            request["MaxResults"] = max_results
        if next_token:
            request["NextToken"] = next_token
        if volume_id:
            request["Filters"] = [{"Name": "volume-id", "Values": [volume_id]}]

        response = self.ec2.describe_snapshots(**request) or {}
        snapshots = [
            self._snapshot_from_ec2(ec2_snapshot)
            for ec2_snapshot in response.get("Snapshots") or ()
        ]
        if not snapshots:
            raise NotFoundError()
        return ListSnapshotsResponse(
            snapshots=snapshots, next_token=response.get("NextToken") or ""
        )

    def enable_fast_snapshot_restores(
        self, availability_zones: Optional[Iterable[str]], snapshot_id: str
    ) -> Any:
        """Enable fast restores of the snapshot in the given zones and return the reply."""
        request = {
            "AvailabilityZones": list(availability_zones or ()),
            "SourceSnapshotIds": [snapshot_id],
        }
        response = self.ec2.enable_fast_snapshot_restores(**request)
        unsuccessful = (response or {}).get("Unsuccessful") or []
        if unsuccessful:
            raise _FastSnapshotRestoresError(
                f"failed to create fast snapshot restores for snapshot {snapshot_id}: "
                f"{unsuccessful}",
                response,
            )
        return response