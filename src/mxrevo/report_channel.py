"""
Report exchange over an open hiddev node.

Every transaction follows the same shape:

    send:   HIDIOCSUSAGES (OUTPUT) → HIDIOCSREPORT → wait + drain
    query:  HIDIOCGREPORT (INPUT)  → wait + drain → HIDIOCGUSAGES

The drain after each commit consumes the device's acknowledgment events so
that a stale event is never mistaken for the answer to the next request.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .errors import EventReadFailure, IoctlFailure
from .hiddev import (
    HID_REPORT_TYPE_INPUT,
    HID_REPORT_TYPE_OUTPUT,
    HidTransport,
    UsageEvent,
)

log = logging.getLogger(__name__)

DEFAULT_ACK_TIMEOUT_MS = 3000


class ReportChannel:
    """Blocking send/query primitives with bounded event waits.

    Exactly one transaction is in flight at a time; the caller owns the
    transport and closes it.
    """

    def __init__(self, transport: HidTransport,
                 ack_timeout_ms: int = DEFAULT_ACK_TIMEOUT_MS):
        self.transport = transport
        self.ack_timeout_ms = ack_timeout_ms

    def send(self, report_id: int, values: Sequence[int]) -> None:
        """Write ``values`` into an output report and commit it.

        Raises:
            IoctlFailure: if either ioctl is rejected.
        """
        values = list(values)
        count = len(values)
        log.debug("send report %02x: %s", report_id,
                  ' '.join(f"{v & 0xFF:02x}" for v in values))
        try:
            self.transport.set_usages(HID_REPORT_TYPE_OUTPUT, report_id, values)
        except OSError as e:
            raise IoctlFailure("send", report_id, count, "HIDIOCSUSAGES", e) from e
        try:
            self.transport.set_report(HID_REPORT_TYPE_OUTPUT, report_id)
        except OSError as e:
            raise IoctlFailure("send", report_id, count, "HIDIOCSREPORT", e) from e

        self.wait_report(self.ack_timeout_ms)

    def query(self, report_id: int, count: int) -> List[int]:
        """Refresh an input report and read back ``count`` values.

        Raises:
            IoctlFailure: if either ioctl is rejected.
        """
        try:
            self.transport.get_report(HID_REPORT_TYPE_INPUT, report_id)
        except OSError as e:
            raise IoctlFailure("query", report_id, count, "HIDIOCGREPORT", e) from e

        self.wait_report(self.ack_timeout_ms)

        try:
            values = self.transport.get_usages(HID_REPORT_TYPE_INPUT, report_id, count)
        except OSError as e:
            raise IoctlFailure("query", report_id, count, "HIDIOCGUSAGES", e) from e
        log.debug("query report %02x: %s", report_id,
                  ' '.join(f"{v & 0xFF:02x}" for v in values))
        return values

    def await_event(self, timeout_ms: int) -> bool:
        """Wait for an event without consuming it.  ``timeout_ms < 0`` blocks.

        Raises:
            EventReadFailure: if the node can no longer be polled.
        """
        try:
            return self.transport.wait_readable(timeout_ms)
        except OSError as e:
            raise EventReadFailure("wait for event on", self.transport.path, e) from e

    def read_event(self) -> Optional[UsageEvent]:
        """Raises EventReadFailure if the node can no longer be read."""
        try:
            return self.transport.read_event()
        except OSError as e:
            raise EventReadFailure("read event from", self.transport.path, e) from e

    def wait_report(self, timeout_ms: int) -> int:
        """Wait for the device to answer, then drain every queued event.

        A read error ends the drain; the next ioctl reports the failure.
        Returns the number of events drained (0 on timeout).
        """
        if not self.await_event(timeout_ms):
            log.debug("No event within %d ms", timeout_ms)
            return 0
        drained = 0
        while True:
            try:
                event = self.transport.read_event()
            except OSError as e:
                log.debug("Drain stopped: %s", e.strerror or e)
                break
            if event is None:
                break
            drained += 1
        log.debug("Drained %d event(s)", drained)
        return drained
