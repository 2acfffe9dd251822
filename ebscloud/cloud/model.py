"""Volume and snapshot records, provisioning limits and size helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

log = logging.getLogger(__name__)

GIB = 1024 * 1024 * 1024

VOLUME_TYPE_IO1 = "io1"
VOLUME_TYPE_IO2 = "io2"
VOLUME_TYPE_GP2 = "gp2"
VOLUME_TYPE_GP3 = "gp3"
VOLUME_TYPE_SC1 = "sc1"
VOLUME_TYPE_ST1 = "st1"
VOLUME_TYPE_SBG1 = "sbg1"
VOLUME_TYPE_SBP1 = "sbp1"
VOLUME_TYPE_STANDARD = "standard"

VALID_VOLUME_TYPES = (
    VOLUME_TYPE_IO1,
    VOLUME_TYPE_IO2,
    VOLUME_TYPE_GP2,
    VOLUME_TYPE_GP3,
    VOLUME_TYPE_SC1,
    VOLUME_TYPE_ST1,
    VOLUME_TYPE_STANDARD,
)

IO1_MIN_TOTAL_IOPS = 100
IO1_MAX_TOTAL_IOPS = 64000
IO1_MAX_IOPS_PER_GB = 50
IO2_MIN_TOTAL_IOPS = 100
IO2_MAX_TOTAL_IOPS = 64000
IO2_BLOCK_EXPRESS_MAX_TOTAL_IOPS = 256000
IO2_MAX_IOPS_PER_GB = 500
GP3_MAX_TOTAL_IOPS = 16000
GP3_MIN_TOTAL_IOPS = 3000
GP3_MAX_IOPS_PER_GB = 500

MAX_NUM_TAGS_PER_RESOURCE = 50
MIN_TAG_KEY_LENGTH = 1
MAX_TAG_KEY_LENGTH = 128
MAX_TAG_VALUE_LENGTH = 256

DEFAULT_VOLUME_SIZE = 100 * GIB

VOLUME_NAME_TAG_KEY = "CSIVolumeName"
SNAPSHOT_NAME_TAG_KEY = "CSIVolumeSnapshotName"
KUBERNETES_TAG_KEY_PREFIX = "kubernetes.io"
AWS_TAG_KEY_PREFIX = "aws:"
AWS_EBS_DRIVER_TAG_KEY = "ebs.csi.aws.com/cluster"

SBE_ZONE = "snow"


@dataclass
class Disk:
    """An EBS volume."""

    volume_id: str
    capacity_gib: int
    availability_zone: str = ""
    snapshot_id: str = ""
    outpost_arn: str = ""
    attachments: list[str] = field(default_factory=list)


@dataclass
class DiskOptions:
    """Parameters for creating an EBS volume."""

    capacity_bytes: int = 0
    tags: dict[str, str] = field(default_factory=dict)
    volume_type: str = ""
    iops_per_gb: int = 0
    allow_iops_per_gb_increase: bool = False
    iops: int = 0
    throughput: int = 0
    availability_zone: str = ""
    outpost_arn: str = ""
    encrypted: bool = False
    block_express: bool = False
    kms_key_id: str = ""
    snapshot_id: str = ""


@dataclass
class Snapshot:
    """An EBS volume snapshot."""

    snapshot_id: str
    source_volume_id: str
    size: int = 0
    creation_time: Optional[datetime] = None
    ready_to_use: bool = False


@dataclass
class SnapshotOptions:
    """Parameters for creating a snapshot."""

    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class ListSnapshotsResponse:
    """A page of snapshots and the token for the next page, empty when there is none."""

    snapshots: list[Snapshot] = field(default_factory=list)
    next_token: str = ""


def bytes_to_gib(size_bytes: int) -> int:
    """Whole GiB contained in ``size_bytes``, rounded down."""
    return size_bytes // GIB


def gib_to_bytes(size_gib: int) -> int:
    """Bytes in ``size_gib`` GiB."""
    return size_gib * GIB


def round_up_gib(size_bytes: int) -> int:
    """GiB needed to hold ``size_bytes``, rounded up."""
    return -(-size_bytes // GIB)


def is_sbe(zone: str) -> bool:
    """Whether the zone is a Snowball Edge device."""
    return zone == SBE_ZONE


def cap_iops(
    volume_type: str,
    requested_capacity_gib: int,
    requested_iops: int,
    min_total_iops: int,
    max_total_iops: int,
    max_iops_per_gb: int,
    allow_increase: bool,
) -> int:
    """Clamp the requested IOPS to the limits of the volume type.

    Zero means no specific amount was requested and is returned unchanged.
    Raises ValueError when the request is below the minimum and may not be raised.
    """
    if requested_iops == 0:
        return 0

    iops = requested_iops
    if iops < min_total_iops:
        if not allow_increase:
            raise ValueError(
                f"invalid IOPS: {iops} is too low, it must be at least {min_total_iops}"
            )
        iops = min_total_iops
        log.debug(
            "Increased IOPS for %s volume of %d GiB to the min supported limit %d",
            volume_type, requested_capacity_gib, iops,
        )
    if iops > max_total_iops:
        iops = max_total_iops
        log.debug(
            "Capped IOPS for %s volume of %d GiB at the max supported limit %d",
            volume_type, requested_capacity_gib, iops,
        )
    max_by_capacity = max_iops_per_gb * requested_capacity_gib
    if iops > max_by_capacity and max_by_capacity >= min_total_iops:
        iops = max_by_capacity
        log.debug(
            "Capped IOPS for %s volume of %d GiB at %d per GB: %d",
            volume_type, requested_capacity_gib, max_iops_per_gb, iops,
        )
    return iops