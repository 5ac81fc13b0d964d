"""Tests for mouse - WheelMouse request sequences over a fake node."""

import errno
from unittest.mock import MagicMock

import pytest
from conftest import make_event

from mxrevo.command_codec import BatteryReport, Variant, WheelMode
from mxrevo.errors import EventReadFailure, UnexpectedDeviceReply
from mxrevo.hiddev import HID_REPORT_TYPE_INPUT, HID_REPORT_TYPE_OUTPUT
from mxrevo.mouse import RECONNECT_STEPS, RECONNECT_TIMEOUT_MS, WheelMouse
from mxrevo.report_channel import ReportChannel


@pytest.fixture
def mouse(transport):
    return WheelMouse(ReportChannel(transport))


class TestSetCommands:

    def test_free_sends_report_0x10(self, mouse, transport):
        mouse.free_spin()
        assert transport.calls[0] == (
            'set_usages', HID_REPORT_TYPE_OUTPUT, 0x10, [1, 0x80, 0x56, 0x81, 0, 0])
        assert transport.calls[1] == ('set_report', HID_REPORT_TYPE_OUTPUT, 0x10)

    def test_each_command_is_one_report(self, mouse, transport):
        mouse.click_to_click(temporary=True)
        mouse.manual(5, 4)
        mouse.automatic(10)
        mouse.soft_free(1, 2)
        mouse.soft_click(3)
        assert transport.sent() == [
            [1, 0x80, 0x56, 0x02, 0, 0],
            [1, 0x80, 0x56, 0x87, 0x54, 0],
            [1, 0x80, 0x56, 0x85, 10, 10],
            [1, 0x80, 0x56, 0x03, 1, 2],
            [1, 0x80, 0x56, 0x04, 3, 3],
        ]

    def test_combo_variant_prefix(self, transport):
        WheelMouse(ReportChannel(transport), Variant.COMBO).free_spin(True)
        assert transport.sent() == [[2, 0x80, 0x56, 0x01, 0, 0]]

    def test_raw(self, mouse, transport):
        mouse.raw(0x21, [9, 8, 7])
        assert transport.calls[0] == ('set_usages', HID_REPORT_TYPE_OUTPUT, 0x21, [9, 8, 7])


class TestQueries:

    def test_battery(self, mouse, transport):
        transport.replies = [[0x01, 0x81, 0x0D, 73, 0x50, 0]]
        report = mouse.battery()
        assert report == BatteryReport(73, 0x50)
        assert report.describe() == "battery level 73%, charging"
        assert transport.sent() == [[1, 0x81, 0x0D, 0, 0, 0]]
        assert ('get_usages', HID_REPORT_TYPE_INPUT, 0x10, 6) in transport.calls

    def test_mode(self, mouse, transport):
        transport.replies = [[0x01, 0x81, 0x08, 0, 0x01, 0]]
        assert mouse.mode() is WheelMode.CLICK_TO_CLICK
        assert transport.sent() == [[1, 0x81, 0x08, 0, 0, 0]]

    def test_mode_free(self, mouse, transport):
        transport.replies = [[0x01, 0x81, 0x08, 0, 0x00, 0]]
        assert mouse.mode() is WheelMode.FREE_SPIN

    def test_mismatched_echo(self, mouse, transport):
        transport.replies = [[0x01, 0x81, 0x0C, 73, 0x50, 0]]
        with pytest.raises(UnexpectedDeviceReply):
            mouse.battery()

    def test_read_report_defaults(self, mouse, transport):
        transport.replies = [[1, 2, 3, 4, 5, 6]]
        assert mouse.read_report() == [1, 2, 3, 4, 5, 6]
        assert transport.sent() == []


class TestReconnect:

    def test_sequence(self, transport):
        lines = []
        mouse = WheelMouse(ReportChannel(transport), reconnect_timeout_ms=1234)
        mouse.reconnect(announce=lines.append)
        assert transport.sent() == [[0xFF, 0x80, 0xB2, 0x01, 0x00, 0x00]]
        assert lines == list(RECONNECT_STEPS)
        assert transport.calls[-1] == ('wait', 1234)

    def test_default_timeout(self, mouse, transport):
        mouse.reconnect(announce=lambda line: None)
        assert transport.calls[-1] == ('wait', RECONNECT_TIMEOUT_MS)

    def test_outcome_not_reported(self, transport):
        channel = MagicMock(spec=ReportChannel)
        channel.await_event.return_value = True
        assert WheelMouse(channel).reconnect(announce=lambda line: None) is None
        channel.await_event.return_value = False
        assert WheelMouse(channel).reconnect(announce=lambda line: None) is None


class TestEvents:

    def test_yields_until_quiet(self, mouse, transport):
        transport.events = [make_event(1), make_event(2)]
        assert [e.value for e in mouse.events(100)] == [1, 2]

    def test_nothing_queued(self, mouse, transport):
        assert list(mouse.events(0)) == []

    def test_unplugged_receiver_raises_domain_error(self, mouse, transport):
        transport.events = [make_event(1)]
        transport.read_event = MagicMock(side_effect=OSError(errno.ENODEV, 'No such device'))
        with pytest.raises(EventReadFailure, match="No such device"):
            list(mouse.events(100))
