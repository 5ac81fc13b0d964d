"""
Vendor command set of the MX-Revolution wheel.

All commands are 6 values on report id 0x10 (hex)::

    01 80 56 z1 00 00   free spinning
    01 80 56 z2 00 00   click-to-click
    01 80 56 03 xx yy   soft free spinning (free once the wheel moves)
    01 80 56 04 xx yy   soft click-to-click
    01 80 56 z5 xx yy   click-to-click, free above up/down speed xx/yy
    01 80 56 z7 xy 00   free with button x, click-to-click with button y
    01 80 56 z8 0x 00   toggle with button x
    01 81 08 00 00 00   query wheel mode
    01 81 0d 00 00 00   query battery
    ff 80 b2 01 00 00   initiate reconnect

``z`` is the permanence bit: 8 stores the mode as power-up default, 0
applies it until the next power cycle.  The first byte is 1 for the mouse
receivers and 2 for the MX-5500 combo receiver.

Replies to queries echo ``01 81 <target>`` followed by three payload bytes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from .errors import MalformedArgument, UnexpectedDeviceReply

log = logging.getLogger(__name__)

REPORT_ID = 0x10
COMMAND_LENGTH = 6

SET_ANNOUNCE = 0x80
QUERY_ANNOUNCE = 0x81
REPLY_MARKER = 0x01
WHEEL_REGISTER = 0x56

PERMANENT = 0x80
TEMPORARY = 0x00

# Base opcodes (low bits of byte 3)
OP_FREE_SPIN = 0x01
OP_CLICK_TO_CLICK = 0x02
OP_SOFT_FREE = 0x03
OP_SOFT_CLICK = 0x04
OP_AUTOMATIC = 0x05
OP_MANUAL_PAIR = 0x07
OP_MANUAL_TOGGLE = 0x08

# Query targets (byte 2)
QUERY_MODE = 0x08
QUERY_BATTERY = 0x0D

RECONNECT_VALUES = (0xFF, 0x80, 0xB2, 0x01, 0x00, 0x00)

BUTTON_MIN, BUTTON_MAX = 0, 15
SPEED_MIN, SPEED_MAX = 0, 50
BYTE_MIN, BYTE_MAX = 0, 255

# Button numbers usable for manual mode changes (1 and 2, the left and right
# buttons, are not)
BUTTON_NAMES = {
    0: 'previously set button',
    3: 'middle (wheel button)',
    4: 'rear thumb button',
    5: 'front thumb button',
    6: 'find button',
    7: 'wheel left tilt',
    8: 'wheel right tilt',
    9: 'thumb wheel forward',
    11: 'thumb wheel backward',
    13: 'thumb wheel pressed',
}


class Variant(Enum):
    """Receiver family; the value is the first byte of every set-command."""
    STANDARD = 1
    COMBO = 2

    @property
    def prefix(self) -> int:
        return self.value


class WheelMode(Enum):
    FREE_SPIN = 'free spinning'
    CLICK_TO_CLICK = 'click-to-click'


class BatteryStatus(Enum):
    ON_BATTERY = 0x30
    CHARGING = 0x50
    FULLY_CHARGED = 0x90


_BATTERY_LABELS = {
    BatteryStatus.ON_BATTERY: 'running on battery',
    BatteryStatus.CHARGING: 'charging',
    BatteryStatus.FULLY_CHARGED: 'fully charged',
}


@dataclass(frozen=True)
class Command:
    """An outgoing report: ``values`` written to ``report_id``."""
    values: Tuple[int, ...]
    report_id: int = REPORT_ID

    def hex(self) -> str:
        return ' '.join(f"{v:02x}" for v in self.values)


@dataclass(frozen=True)
class QueryResult:
    """Decoded query reply.  ``payload`` is only meaningful if ``echoed_ok``."""
    echoed_ok: bool
    opcode: int
    payload: Tuple[int, int, int]
    raw: Tuple[int, ...] = ()


@dataclass(frozen=True)
class BatteryReport:
    level: int
    status_code: int

    @property
    def status(self) -> Optional[BatteryStatus]:
        try:
            return BatteryStatus(self.status_code)
        except ValueError:
            return None

    @property
    def status_text(self) -> str:
        status = self.status
        if status is None:
            return f"status {self.status_code:02x}"
        return _BATTERY_LABELS[status]

    def describe(self) -> str:
        return f"battery level {self.level}%, {self.status_text}"


def check_range(name: str, value: int, low: int, high: int) -> int:
    """Return ``value`` if ``low <= value <= high``, else raise MalformedArgument."""
    if not low <= value <= high:
        raise MalformedArgument(f"{name} {value} out of range ({low}-{high})")
    return value


def permanence_bit(temporary: bool) -> int:
    return TEMPORARY if temporary else PERMANENT


class CommandCodec:
    """Builds commands for one receiver variant and decodes its replies.

    The variant is fixed at construction; every set-command and query
    carries its prefix byte.
    """

    def __init__(self, variant: Variant = Variant.STANDARD):
        self.variant = variant

    @property
    def prefix(self) -> int:
        return self.variant.prefix

    def _wheel(self, opcode: int, param1: int = 0, param2: int = 0) -> Command:
        return Command((self.prefix, SET_ANNOUNCE, WHEEL_REGISTER, opcode, param1, param2))

    # -- mode changes -------------------------------------------------------

    def free_spin(self, temporary: bool = False) -> Command:
        return self._wheel(permanence_bit(temporary) | OP_FREE_SPIN)

    def click_to_click(self, temporary: bool = False) -> Command:
        return self._wheel(permanence_bit(temporary) | OP_CLICK_TO_CLICK)

    def manual(self, up: int = 0, down: Optional[int] = None,
               temporary: bool = False) -> Command:
        """Switch modes with buttons.

        ``up`` selects free spinning and ``down`` click-to-click; when both
        are the same button it toggles between the two modes.
        """
        if down is None:
            down = up
        check_range('button', up, BUTTON_MIN, BUTTON_MAX)
        check_range('button', down, BUTTON_MIN, BUTTON_MAX)
        perm = permanence_bit(temporary)
        if up != down:
            return self._wheel(perm | OP_MANUAL_PAIR, up * 16 + down)
        return self._wheel(perm | OP_MANUAL_TOGGLE, up)

    def automatic(self, up: int = 0, down: Optional[int] = None,
                  temporary: bool = False) -> Command:
        """Click-to-click, switching to free spinning above a wheel speed.

        Speeds are roughly clicks per second; 0 keeps the previous value.
        """
        if down is None:
            down = up
        check_range('speed', up, SPEED_MIN, SPEED_MAX)
        check_range('speed', down, SPEED_MIN, SPEED_MAX)
        return self._wheel(permanence_bit(temporary) | OP_AUTOMATIC, up, down)

    def soft_free(self, first: int = 0, second: Optional[int] = None) -> Command:
        if second is None:
            second = first
        check_range('value', first, BYTE_MIN, BYTE_MAX)
        check_range('value', second, BYTE_MIN, BYTE_MAX)
        return self._wheel(OP_SOFT_FREE, first, second)

    def soft_click(self, first: int = 0, second: Optional[int] = None) -> Command:
        if second is None:
            second = first
        check_range('value', first, BYTE_MIN, BYTE_MAX)
        check_range('value', second, BYTE_MIN, BYTE_MAX)
        return self._wheel(OP_SOFT_CLICK, first, second)

    # -- fixed / passthrough ------------------------------------------------

    @staticmethod
    def reconnect() -> Command:
        return Command(RECONNECT_VALUES)

    @staticmethod
    def raw(report_id: int, values: Sequence[int]) -> Command:
        """Arbitrary report for diagnostics; only byte ranges are checked."""
        check_range('report id', report_id, BYTE_MIN, BYTE_MAX)
        for value in values:
            check_range('byte', value, BYTE_MIN, BYTE_MAX)
        return Command(tuple(values), report_id)

    # -- queries --------------------------------------------------------------

    def query(self, target: int) -> Command:
        return Command((self.prefix, QUERY_ANNOUNCE, target, 0, 0, 0))

    @staticmethod
    def decode(target: int, reply: Sequence[int]) -> QueryResult:
        """Validate the echo of a query reply and split off its payload."""
        raw = tuple(v & 0xFF for v in reply)
        padded = raw + (0,) * (COMMAND_LENGTH - len(raw))
        echoed_ok = (
            len(raw) >= COMMAND_LENGTH
            and padded[0] == REPLY_MARKER
            and padded[1] == QUERY_ANNOUNCE
            and padded[2] == target
        )
        if not echoed_ok:
            log.debug("Reply for %02x failed echo check: %s", target, raw)
        return QueryResult(echoed_ok, padded[2], tuple(padded[3:6]), raw)

    @staticmethod
    def _require_echo(result: QueryResult) -> None:
        if not result.echoed_ok:
            raise UnexpectedDeviceReply(result.raw)

    @classmethod
    def interpret_mode(cls, result: QueryResult) -> WheelMode:
        cls._require_echo(result)
        if result.payload[1] & 0x01:
            return WheelMode.CLICK_TO_CLICK
        return WheelMode.FREE_SPIN

    @classmethod
    def interpret_battery(cls, result: QueryResult) -> BatteryReport:
        cls._require_echo(result)
        return BatteryReport(level=result.payload[0], status_code=result.payload[1])
