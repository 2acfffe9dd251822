import pytest

from ebscloud.cloud.ec2 import EC2Client, tag_list
from ebscloud.cloud.errors import AWSError, is_aws_error
from ebscloud.cloud.metrics import AWSMetrics

METHODS = [
    "describe_volumes",
    "create_volume",
    "delete_volume",
    "detach_volume",
    "attach_volume",
    "describe_instances",
    "create_snapshot",
    "delete_snapshot",
    "describe_snapshots",
    "modify_volume",
    "describe_volumes_modifications",
    "describe_availability_zones",
    "create_tags",
    "enable_fast_snapshot_restores",
]


class FakeClientError(Exception):
    def __init__(self, code, message=""):
        super().__init__(message)
        self.response = {"Error": {"Code": code, "Message": message}}


class FakeEC2:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __getattr__(self, name):
        def handler(**kwargs):
            self.calls.append((name, kwargs))
            if self.error is not None:
                raise self.error
            return {"Operation": name}

        return handler


def make_clock(*times):
    values = iter(times)
    return lambda: next(values)


@pytest.mark.parametrize("method", METHODS)
def test_forwards_calls(method):
    fake = FakeEC2()
    client = EC2Client(fake, metrics=AWSMetrics())
    result = getattr(client, method)(VolumeId="vol-test")
    assert result == {"Operation": method}
    assert fake.calls == [(method, {"VolumeId": "vol-test"})]


def test_success_records_latency():
    metrics = AWSMetrics()
    client = EC2Client(FakeEC2(), metrics=metrics, clock=make_clock(10.0, 10.5))
    client.describe_volumes(VolumeIds=["vol-1"])
    text = metrics.render()
    assert 'cloudprovider_aws_api_request_duration_seconds_count{request="DescribeVolumes"} 1' in text
    assert 'cloudprovider_aws_api_request_duration_seconds_sum{request="DescribeVolumes"} 0.5' in text
    assert "cloudprovider_aws_api_request_errors" not in text


def test_coded_error_becomes_aws_error():
    metrics = AWSMetrics()
    original = FakeClientError("InvalidVolume.NotFound", "missing")
    client = EC2Client(FakeEC2(error=original), metrics=metrics)
    with pytest.raises(AWSError) as info:
        client.delete_volume(VolumeId="vol-1")
    assert info.value.code == "InvalidVolume.NotFound"
    assert info.value.cause is original
    assert is_aws_error(info.value, "InvalidVolume.NotFound")
    assert 'cloudprovider_aws_api_request_errors{request="DeleteVolume"} 1' in metrics.render()


def test_throttle_is_counted():
    metrics = AWSMetrics()
    client = EC2Client(FakeEC2(error=FakeClientError("RequestLimitExceeded")), metrics=metrics)
    with pytest.raises(AWSError):
        client.attach_volume(VolumeId="vol-1")
    text = metrics.render()
    assert 'cloudprovider_aws_api_throttled_requests_total{operation_name="AttachVolume"} 1' in text


def test_other_errors_pass_through():
    metrics = AWSMetrics()
    client = EC2Client(FakeEC2(error=ValueError("boom")), metrics=metrics)
    with pytest.raises(ValueError, match="boom"):
        client.create_tags(Resources=["vol-1"])
    text = metrics.render()
    assert 'cloudprovider_aws_api_request_errors{request="CreateTags"} 1' in text
    assert "throttled" not in text


def test_aws_error_passes_through_unchanged():
    original = AWSError("VolumeInUse", "Volume is in use")
    client = EC2Client(FakeEC2(error=original), metrics=AWSMetrics())
    with pytest.raises(AWSError) as info:
        client.attach_volume(VolumeId="vol-1")
    assert info.value is original


def test_tag_list():
    tags = {"CSIVolumeName": "vol-test", "ebs.csi.aws.com/cluster": "true"}
    assert tag_list(tags) == [
        {"Key": "CSIVolumeName", "Value": "vol-test"},
        {"Key": "ebs.csi.aws.com/cluster", "Value": "true"},
    ]
    assert tag_list({}) == []