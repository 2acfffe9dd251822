import pytest

from ebscloud.cloud.errors import AWSError, CloudError
from ebscloud.cloud.model import gib_to_bytes
from ebscloud.cloud.resize import ResizeOperations
from ebscloud.cloud.wait import WaitTimeoutError


class FakeEC2:
    def __init__(self, **outcomes):
        self.outcomes = {
            name: list(value) if isinstance(value, list) else [value]
            for name, value in outcomes.items()
        }
        self.calls = []

    def __getattr__(self, name):
        outcomes = self.__dict__.get("outcomes", {})
        if name.startswith("_") or name not in outcomes:
            raise AttributeError(name)

        def operation(**kwargs):
            self.calls.append((name, kwargs))
            queue = outcomes[name]
            outcome = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        return operation

    def names(self):
        return [name for name, _ in self.calls]


def make(ec2, sleeps):
    ops = ResizeOperations(ec2, "test-region", sleep=sleeps.append)
    ops.volume_modification_wait_steps = 3
    return ops


def volume(size):
    return {"VolumeId": "vol-test", "Size": size, "AvailabilityZone": "test-az"}


def modification(state):
    return {"VolumeId": "vol-test", "TargetSize": 2, "ModificationState": state}


def test_resize_normal():
    ec2 = FakeEC2(
        describe_volumes=[{"Volumes": [volume(1)]}, {"Volumes": [volume(2)]}],
        modify_volume={"VolumeModification": modification("completed")},
        describe_volumes_modifications={},
    )
    sleeps = []
    assert make(ec2, sleeps).resize_disk("vol-test", gib_to_bytes(2)) == 2
    assert ("modify_volume", {"VolumeId": "vol-test", "Size": 2}) in ec2.calls
    assert sleeps == []


def test_resize_normal_modifying_state():
    ec2 = FakeEC2(
        describe_volumes=[{"Volumes": [volume(1)]}, {"Volumes": [volume(2)]}],
        modify_volume={"VolumeModification": modification("modifying")},
        describe_volumes_modifications={"VolumesModifications": [modification("completed")]},
    )
    assert make(ec2, []).resize_disk("vol-test", gib_to_bytes(2)) == 2
    assert ec2.names().count("describe_volumes_modifications") == 2


def test_resize_with_previous_expansion():
    ec2 = FakeEC2(
        describe_volumes={"Volumes": [volume(2)]},
        describe_volumes_modifications={"VolumesModifications": [modification("completed")]},
    )
    assert make(ec2, []).resize_disk("vol-test", gib_to_bytes(2)) == 2
    assert "modify_volume" not in ec2.names()


def test_resize_already_large_without_modifications():
    ec2 = FakeEC2(
        describe_volumes={"Volumes": [volume(5)]},
        describe_volumes_modifications={},
    )
    assert make(ec2, []).resize_disk("vol-test", gib_to_bytes(2)) == 5
    assert "modify_volume" not in ec2.names()


def test_resize_volume_does_not_exist():
    ec2 = FakeEC2(
        describe_volumes=AWSError("InvalidVolume.NotFound"),
        describe_volumes_modifications={},
    )
    with pytest.raises(AWSError):
        make(ec2, []).resize_disk("vol-test", gib_to_bytes(2))


def test_resize_volume_stuck_modifying():
    ec2 = FakeEC2(
        describe_volumes={"Volumes": [volume(1)]},
        describe_volumes_modifications={"VolumesModifications": [modification("modifying")]},
    )
    sleeps = []
    with pytest.raises(WaitTimeoutError):
        make(ec2, sleeps).resize_disk("vol-test", gib_to_bytes(2))
    assert sleeps == pytest.approx([1.0, 1.7])


def test_resize_rounds_up_to_whole_gib():
    ec2 = FakeEC2(
        describe_volumes=[{"Volumes": [volume(1)]}, {"Volumes": [volume(2)]}],
        modify_volume={"VolumeModification": modification("optimizing")},
        describe_volumes_modifications={},
    )
    assert make(ec2, []).resize_disk("vol-test", gib_to_bytes(1) + 1) == 2
    assert ("modify_volume", {"VolumeId": "vol-test", "Size": 2}) in ec2.calls


def test_resize_still_expanding_raises():
    ec2 = FakeEC2(
        describe_volumes={"Volumes": [volume(1)]},
        modify_volume={"VolumeModification": modification("completed")},
        describe_volumes_modifications={},
    )
    with pytest.raises(CloudError, match="still being expanded"):
        make(ec2, []).resize_disk("vol-test", gib_to_bytes(2))


def test_resize_modify_error_wrapped():
    ec2 = FakeEC2(
        describe_volumes={"Volumes": [volume(1)]},
        modify_volume=RuntimeError("boom"),
        describe_volumes_modifications={},
    )
    with pytest.raises(CloudError, match="could not modify AWS volume 'vol-test': boom"):
        make(ec2, []).resize_disk("vol-test", gib_to_bytes(2))


def test_resize_modification_lookup_error():
    ec2 = FakeEC2(
        describe_volumes={"Volumes": [volume(1)]},
        describe_volumes_modifications=RuntimeError("boom"),
    )
    with pytest.raises(CloudError, match="error fetching volume modifications for 'vol-test'"):
        make(ec2, []).resize_disk("vol-test", gib_to_bytes(2))


def test_resize_modification_not_found_code_means_not_modifying():
    ec2 = FakeEC2(
        describe_volumes=[{"Volumes": [volume(1)]}, {"Volumes": [volume(2)]}],
        modify_volume={"VolumeModification": modification("completed")},
        describe_volumes_modifications=AWSError("InvalidVolumeModification.NotFound"),
    )
    assert make(ec2, []).resize_disk("vol-test", gib_to_bytes(2)) == 2