"""EC2 API access with request metrics and uniform error codes.

The wrapped client is any object exposing the EC2 operations as methods taking
keyword arguments in the EC2 API's shape, such as a boto3 EC2 client. Errors
that carry an AWS error code in ``response["Error"]["Code"]`` are re-raised as
:class:`AWSError`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, Optional

from .errors import AWSError
from .metrics import AWSMetrics, register_metrics

log = logging.getLogger(__name__)

SERVICE_NAME = "ec2"

THROTTLE_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottledException",
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "RequestThrottled",
        "RequestThrottledException",
        "TooManyRequestsException",
        "PriorRequestNotComplete",
        "TransactionInProgressException",
        "EC2ThrottledException",
    }
)


def tag_list(tags: Mapping[str, str]) -> list[dict[str, str]]:
    """Turn a tag mapping into the EC2 list of ``{"Key": ..., "Value": ...}``."""
    return [{"Key": key, "Value": value} for key, value in tags.items()]


def _as_aws_error(exc: BaseException) -> Optional[AWSError]:
    if isinstance(exc, AWSError):
        return exc
    response = getattr(exc, "response", None)
    if isinstance(response, Mapping):
        error = response.get("Error") or {}
        code = error.get("Code")
        if code:
            return AWSError(str(code), str(error.get("Message") or ""), exc)
    return None


class EC2Client:
    """Calls EC2 operations, recording latency, errors and throttling for each."""

    def __init__(
        self,
        client: Any,
        metrics: Optional[AWSMetrics] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._metrics = metrics if metrics is not None else register_metrics()
        self._clock = clock

    def _call(self, operation: str, method: Callable[..., Any], kwargs: dict[str, Any]) -> Any:
        start = self._clock()
        try:
            result = method(**kwargs)
        except Exception as exc:
            self._metrics.record(operation, self._clock() - start, exc)
            aws_error = _as_aws_error(exc)
            if aws_error is None:
                raise
            if aws_error.code in THROTTLE_CODES:
                self._metrics.record_throttle(operation)
                log.info(
                    "Got RequestLimitExceeded error on AWS request %s::%s",
                    SERVICE_NAME,
                    operation,
                )
            if aws_error is exc:
                raise
            raise aws_error from exc
        self._metrics.record(operation, self._clock() - start, None)
        return result

    def describe_volumes(self, **kwargs: Any) -> Any:
        return self._call("DescribeVolumes", self._client.describe_volumes, kwargs)

    def create_volume(self, **kwargs: Any) -> Any:
        return self._call("CreateVolume", self._client.create_volume, kwargs)

    def delete_volume(self, **kwargs: Any) -> Any:
        return self._call("DeleteVolume", self._client.delete_volume, kwargs)

    def detach_volume(self, **kwargs: Any) -> Any:
        return self._call("DetachVolume", self._client.detach_volume, kwargs)

    def attach_volume(self, **kwargs: Any) -> Any:
        return self._call("AttachVolume", self._client.attach_volume, kwargs)

    def describe_instances(self, **kwargs: Any) -> Any:
        return self._call("DescribeInstances", self._client.describe_instances, kwargs)

    def create_snapshot(self, **kwargs: Any) -> Any:
        return self._call("CreateSnapshot", self._client.create_snapshot, kwargs)

    def delete_snapshot(self, **kwargs: Any) -> Any:
        return self._call("DeleteSnapshot", self._client.delete_snapshot, kwargs)

    def describe_snapshots(self, **kwargs: Any) -> Any:
        return self._call("DescribeSnapshots", self._client.describe_snapshots, kwargs)

    def modify_volume(self, **kwargs: Any) -> Any:
        return self._call("ModifyVolume", self._client.modify_volume, kwargs)

    def describe_volumes_modifications(self, **kwargs: Any) -> Any:
        return self._call(
            "DescribeVolumesModifications", self._client.describe_volumes_modifications, kwargs
        )

    def describe_availability_zones(self, **kwargs: Any) -> Any:
        return self._call(
            "DescribeAvailabilityZones", self._client.describe_availability_zones, kwargs
        )

    def create_tags(self, **kwargs: Any) -> Any:
        return self._call("CreateTags", self._client.create_tags, kwargs)

    def enable_fast_snapshot_restores(self, **kwargs: Any) -> Any:
        return self._call(
            "EnableFastSnapshotRestores", self._client.enable_fast_snapshot_restores, kwargs
        )