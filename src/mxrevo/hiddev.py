"""
Linux hiddev kernel interface for MX-Revolution wheel control.

The mouse receiver exposes a generic HID device node
(``/dev/usb/hiddevN`` or ``/dev/hiddevN``).  Vendor reports are exchanged
through a handful of ioctls on that node; asynchronous device events are
read from it as ``struct hiddev_usage_ref`` records.

The ``HidTransport`` ABC abstracts the node so that:
  • Tests can inject a mock transport (no real hardware needed).
  • ``HiddevTransport`` provides the real node via ``fcntl.ioctl``.

Struct layouts and request numbers follow ``<linux/hiddev.h>``.
"""

from __future__ import annotations

import fcntl
import logging
import os
import select
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

log = logging.getLogger(__name__)


# =========================================================================
# Kernel constants (linux/hiddev.h)
# =========================================================================

HID_REPORT_TYPE_INPUT = 1
HID_REPORT_TYPE_OUTPUT = 2
HID_REPORT_TYPE_FEATURE = 3

HIDDEV_FLAG_UREF = 0x1
HIDDEV_FLAG_REPORT = 0x2

# Upper bound of hiddev_usage_ref_multi.values[]
HID_MAX_MULTI_USAGES = 1024

# Native layouts, padding included (the s16 trio is followed by 2 pad bytes)
_DEVINFO = struct.Struct('@4I3hI')                                   # 28 bytes
_REPORT_INFO = struct.Struct('@3I')                                  # 12 bytes
_USAGE_REF = struct.Struct('@5Ii')                                   # 24 bytes
_USAGE_REF_MULTI = struct.Struct(f'@5IiI{HID_MAX_MULTI_USAGES}i')    # 4124 bytes
_INT = struct.Struct('@i')


# =========================================================================
# ioctl request numbers (asm-generic/ioctl.h encoding)
# =========================================================================

_IOC_NONE = 0
_IOC_WRITE = 1
_IOC_READ = 2


def _ioc(direction: int, kind: str, nr: int, size: int) -> int:
    return (direction << 30) | (size << 16) | (ord(kind) << 8) | nr


def _ior(kind: str, nr: int, size: int) -> int:
    return _ioc(_IOC_READ, kind, nr, size)


def _iow(kind: str, nr: int, size: int) -> int:
    return _ioc(_IOC_WRITE, kind, nr, size)


def _iowr(kind: str, nr: int, size: int) -> int:
    return _ioc(_IOC_READ | _IOC_WRITE, kind, nr, size)


HIDIOCGDEVINFO = _ior('H', 0x03, _DEVINFO.size)
HIDIOCGREPORT = _iow('H', 0x07, _REPORT_INFO.size)
HIDIOCSREPORT = _iow('H', 0x08, _REPORT_INFO.size)
HIDIOCSFLAG = _iow('H', 0x0F, _INT.size)
HIDIOCGUSAGES = _iowr('H', 0x13, _USAGE_REF_MULTI.size)
HIDIOCSUSAGES = _iow('H', 0x14, _USAGE_REF_MULTI.size)


# =========================================================================
# Data classes
# =========================================================================

@dataclass(frozen=True)
class DeviceIdentity:
    """Identity reported by HIDIOCGDEVINFO."""
    vendor_id: int
    product_id: int
    version: int = 0
    bustype: int = 0
    busnum: int = 0
    devnum: int = 0
    ifnum: int = 0
    num_applications: int = 0

    @classmethod
    def unpack(cls, buf: bytes) -> DeviceIdentity:
        (bustype, busnum, devnum, ifnum,
         vendor, product, version, num_apps) = _DEVINFO.unpack_from(buf)
        # The kernel declares these as __s16; ids are unsigned in practice.
        return cls(
            vendor_id=vendor & 0xFFFF,
            product_id=product & 0xFFFF,
            version=version & 0xFFFF,
            bustype=bustype,
            busnum=busnum,
            devnum=devnum,
            ifnum=ifnum,
            num_applications=num_apps,
        )


@dataclass(frozen=True)
class UsageEvent:
    """One ``struct hiddev_usage_ref`` read from the node."""
    report_type: int
    report_id: int
    field_index: int
    usage_index: int
    usage_code: int
    value: int

    @classmethod
    def unpack(cls, buf: bytes) -> UsageEvent:
        return cls(*_USAGE_REF.unpack_from(buf))

    def format(self) -> str:
        return (
            f"read: type={self.report_type}, id={self.report_id}, "
            f"field={self.field_index:08x}, usage={self.usage_index:08x}, "
            f"code={self.usage_code:08x}, value={self.value & 0xFFFFFFFF}"
        )


# =========================================================================
# Abstract transport
# =========================================================================

class HidTransport(ABC):
    """Abstract hiddev node, mockable for testing.

    All methods except ``open`` raise ``OSError`` when the kernel rejects
    the request; translation into domain errors happens one level up.
    """

    @property
    @abstractmethod
    def path(self) -> str:
        """Device node path."""

    @abstractmethod
    def open(self) -> None:
        """Open the node read-write.  Raises OSError (ENOENT, EACCES, ...)."""

    @abstractmethod
    def close(self) -> None:
        """Close the node.  Safe to call twice."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the node is currently open."""

    @abstractmethod
    def device_info(self) -> DeviceIdentity:
        """HIDIOCGDEVINFO."""

    @abstractmethod
    def set_nonblocking(self) -> None:
        """Switch reads to O_NONBLOCK."""

    @abstractmethod
    def set_flags(self, flags: int) -> None:
        """HIDIOCSFLAG."""

    @abstractmethod
    def set_usages(self, report_type: int, report_id: int,
                   values: Sequence[int]) -> None:
        """HIDIOCSUSAGES: write all values of field 0 in one call."""

    @abstractmethod
    def get_usages(self, report_type: int, report_id: int,
                   count: int) -> List[int]:
        """HIDIOCGUSAGES: read ``count`` values of field 0."""

    @abstractmethod
    def set_report(self, report_type: int, report_id: int) -> None:
        """HIDIOCSREPORT: commit a report to the device."""

    @abstractmethod
    def get_report(self, report_type: int, report_id: int) -> None:
        """HIDIOCGREPORT: ask the device to refresh a report."""

    @abstractmethod
    def wait_readable(self, timeout_ms: int) -> bool:
        """Wait until an event can be read.  ``timeout_ms < 0`` blocks forever."""

    @abstractmethod
    def read_event(self) -> Optional[UsageEvent]:
        """Read one queued event, or None if nothing is queued."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()


# =========================================================================
# Real transport: /dev/[usb/]hiddevN
# =========================================================================

class HiddevTransport(HidTransport):
    """hiddev node driven through ``fcntl.ioctl``.

    Buffers are always passed as mutable ``bytearray`` objects: the usage
    multi-ref is larger than the 1024 bytes ``ioctl`` accepts for immutable
    arguments, and read-back requests fill the buffer in place.
    """

    def __init__(self, path: str):
        self._path = path
        self._fd: Optional[int] = None

    def __repr__(self) -> str:
        return f"HiddevTransport({self._path!r})"

    @property
    def path(self) -> str:
        return self._path

    def open(self) -> None:
        self._fd = os.open(self._path, os.O_RDWR)
        log.debug("Opened %s (fd %d)", self._path, self._fd)

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            log.debug("Closed %s", self._path)
            self._fd = None

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    def _require_fd(self) -> int:
        if self._fd is None:
            raise RuntimeError(f"{self._path} is not open")
        return self._fd

    def _ioctl(self, request: int, buf: bytearray) -> None:
        fcntl.ioctl(self._require_fd(), request, buf, True)

    # -- identity / flags -------------------------------------------------

    def device_info(self) -> DeviceIdentity:
        buf = bytearray(_DEVINFO.size)
        self._ioctl(HIDIOCGDEVINFO, buf)
        return DeviceIdentity.unpack(buf)

    def set_nonblocking(self) -> None:
        os.set_blocking(self._require_fd(), False)

    def set_flags(self, flags: int) -> None:
        self._ioctl(HIDIOCSFLAG, bytearray(_INT.pack(flags)))

    # -- usages / reports -------------------------------------------------

    @staticmethod
    def _pack_multi(report_type: int, report_id: int,
                    values: Sequence[int], count: int) -> bytearray:
        if count > HID_MAX_MULTI_USAGES:
            raise ValueError(
                f"at most {HID_MAX_MULTI_USAGES} usage values per report, got {count}")
        padded = list(values) + [0] * (HID_MAX_MULTI_USAGES - len(values))
        # uref: report_type, report_id, field_index=0, usage_index=0,
        # usage_code=0, value=0; then num_values and values[]
        return bytearray(_USAGE_REF_MULTI.pack(
            report_type, report_id, 0, 0, 0, 0, count, *padded))

    def set_usages(self, report_type: int, report_id: int,
                   values: Sequence[int]) -> None:
        buf = self._pack_multi(report_type, report_id, values, len(values))
        self._ioctl(HIDIOCSUSAGES, buf)

    def get_usages(self, report_type: int, report_id: int,
                   count: int) -> List[int]:
        buf = self._pack_multi(report_type, report_id, (), count)
        self._ioctl(HIDIOCGUSAGES, buf)
        fields = _USAGE_REF_MULTI.unpack_from(buf)
        return list(fields[7:7 + count])

    def set_report(self, report_type: int, report_id: int) -> None:
        self._ioctl(HIDIOCSREPORT, bytearray(_REPORT_INFO.pack(report_type, report_id, 1)))

    def get_report(self, report_type: int, report_id: int) -> None:
        self._ioctl(HIDIOCGREPORT, bytearray(_REPORT_INFO.pack(report_type, report_id, 1)))

    # -- events -------------------------------------------------------------

    def wait_readable(self, timeout_ms: int) -> bool:
        timeout = None if timeout_ms < 0 else timeout_ms / 1000.0
        ready, _, _ = select.select([self._require_fd()], [], [], timeout)
        return bool(ready)

    def read_event(self) -> Optional[UsageEvent]:
        try:
            data = os.read(self._require_fd(), _USAGE_REF.size)
        except BlockingIOError:
            return None
        if len(data) < _USAGE_REF.size:
            return None
        return UsageEvent.unpack(data)
