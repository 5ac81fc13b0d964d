"""
Operation tokens and their dispatch.

A command line is a list of tokens such as ``temp-free``, ``manual=3,5`` or
``auto=10``.  All tokens are parsed up front (so a typo never leaves the
wheel half-configured); the dispatcher then runs them in order against a
``WheelMouse``.

Numbers follow C ``strtol(..., 0)`` rules: ``0x`` hex, leading-zero octal,
otherwise decimal.  A missing value takes the default, a missing second
value repeats the first.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .command_codec import (
    BUTTON_MAX,
    BUTTON_MIN,
    BYTE_MAX,
    BYTE_MIN,
    COMMAND_LENGTH,
    REPORT_ID,
    SPEED_MAX,
    SPEED_MIN,
)
from .errors import MalformedArgument, UnexpectedDeviceReply
from .mouse import WheelMouse

log = logging.getLogger(__name__)

TEMP_PREFIX = 'temp-'
RAW_MAX_VALUES = 256
DUMP_MAX_SECONDS = 24 * 60 * 60

_NUMBER = re.compile(r'\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)')


@dataclass(frozen=True)
class Operation:
    """A parsed token: operation name, numeric arguments, permanence."""
    name: str
    args: Tuple[int, ...] = ()
    temporary: bool = False
    token: str = ''


# =========================================================================
# Numeric mini-grammar
# =========================================================================

def _to_int(sign: str, digits: str) -> int:
    if digits[:2] in ('0x', '0X'):
        value = int(digits, 16)
    elif len(digits) > 1 and digits[0] == '0':
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == '-' else value


def _one_arg(token: str, text: str, pos: int, delimiter: str, default: int,
             low: int, high: int) -> Tuple[int, int]:
    """Parse ``<delimiter><number>`` at ``pos``; returns (value, new_pos)."""
    if pos >= len(text):
        return default, pos
    if text[pos] != delimiter:
        raise MalformedArgument(f"bad argument `{token}': `{delimiter}' expected")
    pos += 1
    match = _NUMBER.match(text, pos)
    if match is None:
        return default, pos
    value = _to_int(match.group(1), match.group(2))
    if not low <= value <= high:
        raise MalformedArgument(
            f"argument `{text[pos:match.end()].strip()}' out of range ({low}-{high})")
    return value, match.end()


def two_args(token: str, text: str, default: int,
             low: int, high: int) -> Tuple[int, int]:
    """``[=a[,b]]`` → (a, b); b defaults to a."""
    first, pos = _one_arg(token, text, 0, '=', default, low, high)
    second, pos = _one_arg(token, text, pos, ',', first, low, high)
    if pos < len(text):
        raise MalformedArgument(f"malformed argument `{token}'")
    return first, second


def n_args(token: str, text: str, limit: int, default: int,
           low: int, high: int) -> Tuple[int, ...]:
    """``=a,b,c...`` → values actually present (up to ``limit``)."""
    values: List[int] = []
    pos = 0
    delimiter = '='
    while pos < len(text) and len(values) < limit:
        value, pos = _one_arg(token, text, pos, delimiter, default, low, high)
        values.append(value)
        delimiter = ','
    if pos < len(text):
        raise MalformedArgument(f"malformed argument `{token}'")
    return tuple(values)


# =========================================================================
# Token parsing
# =========================================================================

def _no_args(token: str, text: str) -> Tuple[int, ...]:
    if text:
        raise MalformedArgument(f"malformed argument `{token}'")
    return ()


def _range_pair(default: int, low: int, high: int):
    def parse(token: str, text: str) -> Tuple[int, ...]:
        return two_args(token, text, default, low, high)
    return parse


def _raw_args(token: str, text: str) -> Tuple[int, ...]:
    values = n_args(token, text, RAW_MAX_VALUES, 0, BYTE_MIN, BYTE_MAX)
    if len(values) < 2:
        raise MalformedArgument(f"`{token}': report id and at least one byte expected")
    return values


def _query_args(token: str, text: str) -> Tuple[int, ...]:
    report_id, count = two_args(token, text, -1, BYTE_MIN, BYTE_MAX)
    if report_id == -1:
        return REPORT_ID, COMMAND_LENGTH
    return report_id, count


_ARGUMENT_PARSERS: Dict[str, Callable[[str, str], Tuple[int, ...]]] = {
    'free': _no_args,
    'click': _no_args,
    'manual': _range_pair(0, BUTTON_MIN, BUTTON_MAX),
    'auto': _range_pair(0, SPEED_MIN, SPEED_MAX),
    'soft-free': _range_pair(0, BYTE_MIN, BYTE_MAX),
    'soft-click': _range_pair(0, BYTE_MIN, BYTE_MAX),
    'reconnect': _no_args,
    'mode': _no_args,
    'battery': _no_args,
    'raw': _raw_args,
    'query': _query_args,
    'dump': _range_pair(3, -1, DUMP_MAX_SECONDS),
    'sleep': _range_pair(1, 0, 255),
}

OPERATION_NAMES = tuple(_ARGUMENT_PARSERS)


def parse_operation(token: str) -> Operation:
    """Parse one command-line token.

    Raises:
        MalformedArgument: unknown name, bad syntax or value out of range.
    """
    body = token
    temporary = body.startswith(TEMP_PREFIX)
    if temporary:
        body = body[len(TEMP_PREFIX):]

    name = body.partition('=')[0]
    parser = _ARGUMENT_PARSERS.get(name)
    if parser is None:
        raise MalformedArgument(f"unknown option `{token}'")

    args = parser(token, body[len(name):])
    return Operation(name=name, args=args, temporary=temporary, token=token)


def parse_operations(tokens: Iterable[str]) -> List[Operation]:
    return [parse_operation(token) for token in tokens]


# =========================================================================
# Dispatch
# =========================================================================

class Dispatcher:
    """Runs parsed operations against a ``WheelMouse`` and prints results."""

    def __init__(self, mouse: WheelMouse,
                 sleep: Optional[Callable[[float], None]] = None):
        self.mouse = mouse
        self._sleep = sleep or time.sleep
        self._handlers: Dict[str, Callable[[Operation], None]] = {
            'free': self._free,
            'click': self._click,
            'manual': self._manual,
            'auto': self._auto,
            'soft-free': self._soft_free,
            'soft-click': self._soft_click,
            'reconnect': self._reconnect,
            'mode': self._mode,
            'battery': self._battery,
            'raw': self._raw,
            'query': self._query,
            'dump': self._dump,
            'sleep': self._sleep_op,
        }

    def run(self, operations: Iterable[Operation]) -> None:
        for operation in operations:
            self.dispatch(operation)

    def dispatch(self, operation: Operation) -> None:
        log.debug("Running %s", operation.token or operation.name)
        self._handlers[operation.name](operation)

    # -- set operations -------------------------------------------------------

    def _free(self, op: Operation) -> None:
        self.mouse.free_spin(op.temporary)

    def _click(self, op: Operation) -> None:
        self.mouse.click_to_click(op.temporary)

    def _manual(self, op: Operation) -> None:
        up, down = op.args
        self.mouse.manual(up, down, op.temporary)

    def _auto(self, op: Operation) -> None:
        up, down = op.args
        self.mouse.automatic(up, down, op.temporary)

    def _soft_free(self, op: Operation) -> None:
        self.mouse.soft_free(*op.args)

    def _soft_click(self, op: Operation) -> None:
        self.mouse.soft_click(*op.args)

    def _reconnect(self, op: Operation) -> None:
        self.mouse.reconnect()

    # -- queries ----------------------------------------------------------------

    def _mode(self, op: Operation) -> None:
        try:
            print(self.mouse.mode().value)
        except UnexpectedDeviceReply as e:
            print(e)

    def _battery(self, op: Operation) -> None:
        try:
            print(self.mouse.battery().describe())
        except UnexpectedDeviceReply as e:
            print(e)

    # -- debug ------------------------------------------------------------------

    def _raw(self, op: Operation) -> None:
        self.mouse.raw(op.args[0], op.args[1:])

    def _query(self, op: Operation) -> None:
        report_id, count = op.args
        values = self.mouse.read_report(report_id, count)
        print(f"report {report_id:02x}:" + ''.join(f" {v & 0xFF:02x}" for v in values))

    def _dump(self, op: Operation) -> None:
        seconds = op.args[0]
        timeout_ms = seconds * 1000 if seconds > 0 else seconds
        for event in self.mouse.events(timeout_ms):
            print(event.format())

    def _sleep_op(self, op: Operation) -> None:
        self._sleep(op.args[0])
