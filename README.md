# ebscloud

`ebscloud` manages EBS volumes and snapshots through an EC2 client that you
supply. It can:

- create, delete, look up, resize, attach and detach volumes;
- create, look up, list and delete snapshots, and enable fast snapshot restores;
- choose block-device names for attachments and track attachments in flight;
- count request latency, errors and throttling, and render them as Prometheus text.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
```

## The EC2 client

`Cloud` talks to EC2 through any object whose methods are named after the EC2
operations (`describe_volumes`, `create_volume`, `attach_volume`,
`describe_snapshots`, `modify_volume`, and so on), take keyword arguments in
the EC2 API's shape and return dictionaries in the EC2 response shape, for
example `{"Volumes": [...], "NextToken": "..."}`.

`ebscloud.cloud.ec2.EC2Client` wraps such an object (a boto3-style EC2 client,
or a fake in tests). For every call it records latency or an error in an
`AWSMetrics` collector, counts throttled requests, and re-raises any exception
carrying `response["Error"]["Code"]` as an `AWSError` with that code.

```python
from ebscloud.cloud.cloud import Cloud
from ebscloud.cloud.ec2 import EC2Client

cloud = Cloud(EC2Client(my_sdk_client), region="us-west-2")
```

## Volumes

```python
from ebscloud.cloud.model import DiskOptions, gib_to_bytes

disk = cloud.create_disk(
    "pvc-1234",
    DiskOptions(capacity_bytes=gib_to_bytes(10), volume_type="gp3"),
)
device_path = cloud.attach_disk(disk.volume_id, "i-0123456789abcdef0")
cloud.detach_disk(disk.volume_id, "i-0123456789abcdef0")
cloud.delete_disk(disk.volume_id)
```

- `create_disk` defaults to `gp3`, clamps IOPS to the limits of the volume
  type (`cap_iops`), uses the SHA-256 of the volume name as idempotency token,
  picks the first availability zone when none is given, and waits until the
  volume is `available`. If waiting fails, the new volume is deleted again.
  In the `snow` zone tags are applied with a separate `create_tags` call.
- `get_disk_by_name(name, capacity_bytes)` finds the volume tagged
  `CSIVolumeName=name` and raises `DiskExistsDiffSizeError` if its size differs.
- `get_disk_by_id(volume_id)` also lists the instances the volume is attached to.
- `resize_disk(volume_id, new_size_bytes)` grows the volume to the requested
  size rounded up to whole GiB, waits for the modification, and returns the
  size in GiB.
- `wait_for_attachment_state(...)` polls with exponential backoff until the
  attachment reaches the expected state.
- `is_exist_instance(node_id)` and `availability_zones()` (a set of zone names)
  complete the volume operations.

## Snapshots

```python
from ebscloud.cloud.model import SnapshotOptions

snap = cloud.create_snapshot(disk.volume_id, SnapshotOptions(tags={"team": "storage"}))
page = cloud.list_snapshots(disk.volume_id, 5, "")
cloud.delete_snapshot(snap.snapshot_id)
```

`list_snapshots` returns one page as a `ListSnapshotsResponse`; pass its
`next_token` to fetch the next page. A `max_results` from 1 to 4 raises
`InvalidMaxResultsError`, and an empty page raises `NotFoundError`.

## Errors

Errors from cloud operations are subclasses of
`ebscloud.cloud.errors.CloudError`: `NotFoundError`, `MultiDisksError`,
`MultiSnapshotsError`, `DiskExistsDiffSizeError`,
`IdempotentParameterMismatchError`, `VolumeInUseError`,
`InvalidMaxResultsError`, `VolumeNotBeingModifiedError` and others. Waits
that run out of attempts raise `ebscloud.cloud.wait.WaitTimeoutError`, and the
device manager raises `ebscloud.devicemanager.manager.DeviceError`.
`is_aws_error(err, code)` checks an exception, and the exceptions it was
raised from, for an `AWSError` with the given code.

## Waiting

`Cloud` takes a `sleep` callable, and its polling settings are class
attributes (`volume_attachment_state_poll_steps`,
`volume_modification_wait_steps`, `volume_available_poll_timeout`, ...), so
tests can run without real delays. The helpers `exponential_backoff` and
`poll` in `ebscloud.cloud.wait` can be used on their own.

## Device names

```python
from ebscloud.devicemanager.allocator import NameAllocator
from ebscloud.devicemanager.manager import DeviceManager

NameAllocator().get_next(set(), "/dev/xvd")   # "/dev/xvdaa"

manager = DeviceManager()
instance = {"InstanceId": "i-1", "BlockDeviceMappings": []}
device = manager.new_device(instance, "vol-1")
device.release(False)
```

Names are handed out in the order `aa` to `dx`. `DeviceManager` remembers
names reserved for attachments still in progress; `Device.taint()` keeps a
reservation through a later `release(False)`, and `release(True)` frees it
anyway.

## Metrics

`ebscloud.cloud.metrics.register_metrics()` returns the process-wide
`AWSMetrics` collector, which `EC2Client` uses unless given another.
`AWSMetrics.render()` returns the request duration histogram, the error
counter and the throttle counter in the Prometheus text format.

## What this package does not do

It has no command-line program and runs no server: it offers no storage
plugin endpoint and does not serve the metrics over HTTP (call `render()` and
serve the text yourself). It does not create an AWS client or handle
credentials, regions or endpoints; the client is always supplied by the caller.

## Tests

```
pytest
```