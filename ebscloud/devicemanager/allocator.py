"""Allocation of free block-device names for volume attachments."""

from __future__ import annotations

from collections.abc import Container
from string import ascii_lowercase


class NoDeviceNameError(Exception):
    """Raised when every allowed device name is already in use."""


def _suffixes() -> tuple[str, ...]:
    # EBS refuses to mount devices past "dx", so the range stops there.
    names = []
    for first in "abcd":
        last = "x" if first == "d" else "z"
        for second in ascii_lowercase[: ascii_lowercase.index(last) + 1]:
            names.append(first + second)
    return tuple(names)


_SUFFIXES = _suffixes()


class NameAllocator:
    """Finds the first unused device name in the order aa, ab, ..., az, ba, ..., dx.

    Reusing a recently used name can leave a volume attaching forever, so the
    caller passes every name that is attached or being attached.
    """

    def get_next(self, existing_names: Container[str], prefix: str) -> str:
        """Return the first name ``prefix + suffix`` not present in ``existing_names``."""
        for suffix in _SUFFIXES:
            name = f"{prefix}{suffix}"
            if name not in existing_names:
                return name
        raise NoDeviceNameError("there are no names available")