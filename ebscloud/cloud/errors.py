"""Errors raised by cloud operations."""

from __future__ import annotations

from typing import Optional


class CloudError(Exception):
    """Base class for errors reported by cloud operations."""

    default_message = "cloud operation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class MultiDisksError(CloudError):
    """Several disks carry the same volume name."""

    default_message = "Multiple disks with same name"


class DiskExistsDiffSizeError(CloudError):
    """A disk with the given name exists but has a different size."""

    default_message = "There is already a disk with same name and different size"


class NotFoundError(CloudError):
    """The requested resource does not exist."""

    default_message = "Resource was not found"


class IdempotentParameterMismatchError(CloudError):
    """Another request with the same idempotency token used other parameters."""

    default_message = (
        "Parameters on this idempotent request are inconsistent with parameters "
        "used in previous request(s)"
    )


class AlreadyExistsError(CloudError):
    """The resource already exists."""

    default_message = "Resource already exists"


class VolumeInUseError(CloudError):
    """The volume is already attached to an instance."""

    default_message = "Request volume is already attached to an instance"


class MultiSnapshotsError(CloudError):
    """Several snapshots match the same name."""

    default_message = "Multiple snapshots with the same name found"


class InvalidMaxResultsError(CloudError):
    """A page size between 1 and 4 was requested."""

    default_message = "MaxResults parameter must be 0 or greater than or equal to 5"


class VolumeNotBeingModifiedError(CloudError):
    """The volume has no modification in progress or on record."""

    default_message = "volume is not being modified"


class AWSError(Exception):
    """An error returned by the AWS API, identified by its error code."""

    def __init__(self, code: str, message: str = "", cause: Optional[BaseException] = None) -> None:
        self.code = code
        self.message = message
        self.cause = cause
        text = f"{code}: {message}"
        if cause is not None:
            text += f"\ncaused by: {cause}"
        super().__init__(text)


def is_aws_error(err: Optional[BaseException], code: str) -> bool:
    """Return True if ``err`` or an exception it was raised from is an AWSError with ``code``."""
    seen: set[int] = set()
    current = err
    while current is not None and id(current) not in seen:
        if isinstance(current, AWSError) and current.code == code:
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False