"""Shared fakes: an in-memory hiddev node that records every request."""

from typing import List, Optional, Sequence

import pytest

from mxrevo import device_locator
from mxrevo.hiddev import DeviceIdentity, HidTransport, UsageEvent


class FakeTransport(HidTransport):
    """Scriptable stand-in for ``HiddevTransport``.

    ``events`` is the queue returned by ``read_event`` after a successful
    ``wait_readable``; ``replies`` feeds ``get_usages`` in order.
    """

    def __init__(self, path: str = '/dev/usb/hiddev0',
                 identity: Optional[DeviceIdentity] = None,
                 open_error: Optional[OSError] = None,
                 info_error: Optional[OSError] = None):
        self._path = path
        self.identity = identity or DeviceIdentity(0x046D, 0xC51A)
        self.open_error = open_error
        self.info_error = info_error
        self.opened = False
        self.closed = False
        self.nonblocking = False
        self.flags = 0
        self.calls: List[tuple] = []
        self.events: List[UsageEvent] = []
        self.replies: List[List[int]] = []
        self.readable = True

    @property
    def path(self) -> str:
        return self._path

    def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    def close(self) -> None:
        if self.opened:
            self.closed = True
        self.opened = False

    @property
    def is_open(self) -> bool:
        return self.opened

    def device_info(self) -> DeviceIdentity:
        if self.info_error is not None:
            raise self.info_error
        return self.identity

    def set_nonblocking(self) -> None:
        self.nonblocking = True

    def set_flags(self, flags: int) -> None:
        self.calls.append(('set_flags', flags))
        self.flags = flags

    def set_usages(self, report_type: int, report_id: int,
                   values: Sequence[int]) -> None:
        self.calls.append(('set_usages', report_type, report_id, list(values)))

    def get_usages(self, report_type: int, report_id: int,
                   count: int) -> List[int]:
        self.calls.append(('get_usages', report_type, report_id, count))
        reply = self.replies.pop(0) if self.replies else [0] * count
        return list(reply[:count])

    def set_report(self, report_type: int, report_id: int) -> None:
        self.calls.append(('set_report', report_type, report_id))

    def get_report(self, report_type: int, report_id: int) -> None:
        self.calls.append(('get_report', report_type, report_id))

    def wait_readable(self, timeout_ms: int) -> bool:
        self.calls.append(('wait', timeout_ms))
        return self.readable and bool(self.events)

    def read_event(self) -> Optional[UsageEvent]:
        return self.events.pop(0) if self.events else None

    def sent(self) -> List[List[int]]:
        """Values of every committed output report, in order."""
        return [c[3] for c in self.calls if c[0] == 'set_usages']


def make_event(value: int = 0, report_id: int = 0x10) -> UsageEvent:
    return UsageEvent(report_type=1, report_id=report_id, field_index=0,
                      usage_index=0, usage_code=0xFF000001, value=value)


@pytest.fixture
def transport() -> FakeTransport:
    t = FakeTransport()
    t.open()
    return t


@pytest.fixture(autouse=True)
def _release_live_handle():
    """Tests may leave a located handle open; never leak it into the next test."""
    yield
    device_locator._set_live(None)
