import pytest

from ebscloud.cloud.errors import (
    AWSError,
    CloudError,
    DiskExistsDiffSizeError,
    IdempotentParameterMismatchError,
    InvalidMaxResultsError,
    MultiDisksError,
    MultiSnapshotsError,
    NotFoundError,
    VolumeInUseError,
    VolumeNotBeingModifiedError,
    is_aws_error,
)


@pytest.mark.parametrize(
    "error_class, message",
    [
        (MultiDisksError, "Multiple disks with same name"),
        (DiskExistsDiffSizeError, "There is already a disk with same name and different size"),
        (NotFoundError, "Resource was not found"),
        (VolumeInUseError, "Request volume is already attached to an instance"),
        (MultiSnapshotsError, "Multiple snapshots with the same name found"),
        (InvalidMaxResultsError, "MaxResults parameter must be 0 or greater than or equal to 5"),
        (VolumeNotBeingModifiedError, "volume is not being modified"),
    ],
)
def test_default_messages(error_class, message):
    assert str(error_class()) == message


def test_idempotent_message_mentions_previous_requests():
    assert "previous request(s)" in str(IdempotentParameterMismatchError())


def test_custom_message_overrides_default():
    assert str(NotFoundError("volume vol-1 gone")) == "volume vol-1 gone"


def test_cloud_errors_share_base_class():
    err = NotFoundError()
    assert isinstance(err, CloudError)
    assert str(err) == "Resource was not found"


def test_aws_error_format_and_fields():
    err = AWSError("InvalidVolume.NotFound", "foo")
    assert err.code == "InvalidVolume.NotFound"
    assert err.message == "foo"
    assert str(err) == "InvalidVolume.NotFound: foo"


def test_aws_error_includes_cause():
    cause = ValueError("not able to find source snapshot")
    err = AWSError("InvalidSnapshot.NotFound", "Snapshot not found", cause)
    assert err.cause is cause
    assert str(err).endswith("caused by: not able to find source snapshot")


def test_is_aws_error_matches_code():
    err = AWSError("VolumeInUse", "Volume is in use")
    assert is_aws_error(err, "VolumeInUse")
    assert not is_aws_error(err, "IncorrectState")


def test_is_aws_error_rejects_other_errors():
    assert not is_aws_error(ValueError("VolumeInUse"), "VolumeInUse")
    assert not is_aws_error(None, "VolumeInUse")


def test_is_aws_error_follows_chain():
    try:
        try:
            raise AWSError("IncorrectState", "bad state")
        except AWSError as inner:
            raise RuntimeError("wrapped") from inner
    except RuntimeError as outer:
        assert is_aws_error(outer, "IncorrectState")