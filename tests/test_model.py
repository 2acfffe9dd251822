import pytest

from ebscloud.cloud.model import (
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
    Disk,
    DiskOptions,
    ListSnapshotsResponse,
    SnapshotOptions,
    bytes_to_gib,
    cap_iops,
    gib_to_bytes,
    is_sbe,
    round_up_gib,
)

IO1 = (IO1_MIN_TOTAL_IOPS, IO1_MAX_TOTAL_IOPS, IO1_MAX_IOPS_PER_GB)
IO2 = (IO2_MIN_TOTAL_IOPS, IO2_MAX_TOTAL_IOPS, IO2_MAX_IOPS_PER_GB)
IO2_BE = (IO2_MIN_TOTAL_IOPS, IO2_BLOCK_EXPRESS_MAX_TOTAL_IOPS, IO2_MAX_IOPS_PER_GB)
GP3 = (GP3_MIN_TOTAL_IOPS, GP3_MAX_TOTAL_IOPS, GP3_MAX_IOPS_PER_GB)


@pytest.mark.parametrize(
    "volume_type, capacity, requested, limits, allow, expected",
    [
        ("gp3", 500, 6000, GP3, False, 6000),
        ("io2", 1, 100, IO2, False, 100),
        ("io1", 200, 100, IO1, False, 100),
        ("gp3", 400, 3000, GP3, False, 3000),
        ("io1", 4, 4, IO1, True, 100),
        ("io1", 4, 40000, IO1, False, 200),
        ("io1", 4000, 40000000, IO1, False, 64000),
        ("io2", 4, 4, IO2, True, 100),
        ("io2", 4, 40000, IO2, False, 2000),
        ("io2", 4000, 400000000, IO2, False, 64000),
        ("io2", 3333, 333300000, IO2_BE, False, 256000),
        ("io1", 10, 0, IO1, False, 0),
    ],
)
def test_cap_iops(volume_type, capacity, requested, limits, allow, expected):
    assert cap_iops(volume_type, capacity, requested, *limits, allow) == expected


@pytest.mark.parametrize("volume_type, limits", [("io1", IO1), ("io2", IO2)])
def test_cap_iops_too_low(volume_type, limits):
    with pytest.raises(ValueError) as info:
        cap_iops(volume_type, 4, 4, *limits, False)
    assert str(info.value) == "invalid IOPS: 4 is too low, it must be at least 100"


def test_size_round_trip():
    assert bytes_to_gib(gib_to_bytes(500)) == 500
    assert bytes_to_gib(gib_to_bytes(4000)) == 4000


def test_bytes_to_gib_rounds_down_and_round_up_rounds_up():
    size = gib_to_bytes(2) + 1
    assert bytes_to_gib(size) == 2
    assert round_up_gib(size) == 3
    assert round_up_gib(gib_to_bytes(2)) == 2


def test_is_sbe():
    assert is_sbe("snow")
    assert not is_sbe("us-west-2b")
    assert not is_sbe("")


def test_records_do_not_share_defaults():
    first, second = Disk("vol-1", 1), Disk("vol-2", 1)
    first.attachments.append("i-1")
    assert second.attachments == []
    options = DiskOptions()
    options.tags["k"] = "v"
    assert DiskOptions().tags == {}
    assert SnapshotOptions().tags == {}
    assert ListSnapshotsResponse().next_token == ""