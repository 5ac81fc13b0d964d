"""
Wheel operations on an acquired receiver.

``WheelMouse`` binds a ``CommandCodec`` (fixed to the receiver's variant) to
a ``ReportChannel`` and runs the request sequences:

    set:    send(command)
    query:  send(query command) → query(report 0x10, 6) → decode
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator, List, Optional, Sequence

from .command_codec import (
    COMMAND_LENGTH,
    QUERY_BATTERY,
    QUERY_MODE,
    REPORT_ID,
    BatteryReport,
    Command,
    CommandCodec,
    QueryResult,
    Variant,
    WheelMode,
)
from .hiddev import UsageEvent
from .report_channel import ReportChannel

log = logging.getLogger(__name__)

RECONNECT_TIMEOUT_MS = 60000

RECONNECT_STEPS = (
    "Reconnection initiated",
    " - Turn off the mouse",
    " - Press and hold the left mouse button",
    " - Turn on the mouse",
    " - Press the right button 5 times",
    " - Release the left mouse button",
)


class WheelMouse:
    """Scroll wheel control for one receiver."""

    def __init__(self, channel: ReportChannel, variant: Variant = Variant.STANDARD,
                 reconnect_timeout_ms: int = RECONNECT_TIMEOUT_MS):
        self.channel = channel
        self.codec = CommandCodec(variant)
        self.reconnect_timeout_ms = reconnect_timeout_ms

    def execute(self, command: Command) -> Command:
        self.channel.send(command.report_id, command.values)
        return command

    # -- mode changes -------------------------------------------------------

    def free_spin(self, temporary: bool = False) -> Command:
        return self.execute(self.codec.free_spin(temporary))

    def click_to_click(self, temporary: bool = False) -> Command:
        return self.execute(self.codec.click_to_click(temporary))

    def manual(self, up: int = 0, down: Optional[int] = None,
               temporary: bool = False) -> Command:
        return self.execute(self.codec.manual(up, down, temporary))

    def automatic(self, up: int = 0, down: Optional[int] = None,
                  temporary: bool = False) -> Command:
        return self.execute(self.codec.automatic(up, down, temporary))

    def soft_free(self, first: int = 0, second: Optional[int] = None) -> Command:
        return self.execute(self.codec.soft_free(first, second))

    def soft_click(self, first: int = 0, second: Optional[int] = None) -> Command:
        return self.execute(self.codec.soft_click(first, second))

    # -- queries --------------------------------------------------------------

    def query(self, target: int) -> QueryResult:
        self.execute(self.codec.query(target))
        reply = self.channel.query(REPORT_ID, COMMAND_LENGTH)
        return self.codec.decode(target, reply)

    def mode(self) -> WheelMode:
        """Raises UnexpectedDeviceReply if the reply does not echo the query."""
        return self.codec.interpret_mode(self.query(QUERY_MODE))

    def battery(self) -> BatteryReport:
        """Raises UnexpectedDeviceReply if the reply does not echo the query."""
        return self.codec.interpret_battery(self.query(QUERY_BATTERY))

    # -- reconnect ------------------------------------------------------------

    def reconnect(self, announce: Callable[[str], None] = print) -> None:
        """Start re-pairing and give the user time to do the button dance.

        Returns after the first device event or the timeout, whichever comes
        first; the two outcomes are not told apart.
        """
        self.execute(self.codec.reconnect())
        for line in RECONNECT_STEPS:
            announce(line)
        arrived = self.channel.await_event(self.reconnect_timeout_ms)
        log.debug("Reconnect wait ended (%s)", "event" if arrived else "timeout")

    # -- diagnostics ------------------------------------------------------------

    def raw(self, report_id: int, values: Sequence[int]) -> Command:
        return self.execute(self.codec.raw(report_id, values))

    def read_report(self, report_id: int = REPORT_ID,
                    count: int = COMMAND_LENGTH) -> List[int]:
        return self.channel.query(report_id, count)

    def events(self, timeout_ms: int) -> Iterator[UsageEvent]:
        """Yield events while each one arrives within ``timeout_ms``."""
        while self.channel.await_event(timeout_ms):
            event = self.channel.read_event()
            if event is None:
                break
            yield event
