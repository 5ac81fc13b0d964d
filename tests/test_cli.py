"""
Tests for cli - argument parsing, exit codes and the device flow.

Tests cover:
- main() with no operations (prints help, returns 0)
- --version
- malformed tokens fail before the device is touched
- device-not-found / ioctl failure exit 1 with "mxrevo: ..." on stderr
- end-to-end runs over a fake node (free, battery, bad reply)
- --device and config precedence
- --doctor dispatch
"""

import errno
from unittest.mock import MagicMock, patch

import pytest
from conftest import FakeTransport

from mxrevo.cli import build_parser, main
from mxrevo.conf import Settings
from mxrevo.device_locator import LOGITECH, MX_5500, DeviceLocator
from mxrevo.errors import DeviceNotFound
from mxrevo.hiddev import DeviceIdentity


@pytest.fixture
def node():
    return FakeTransport('/dev/usb/hiddev0')


@pytest.fixture
def wired(node):
    """Route the CLI's locator to a single fake node, with default settings."""
    def make_locator(device_path=None):
        return DeviceLocator(device_path, transport_factory=lambda path: node)

    with patch('mxrevo.device_locator.DeviceLocator', side_effect=make_locator) as locator, \
         patch('mxrevo.conf.load_settings', return_value=Settings(ack_timeout_ms=0)):
        yield locator


class TestParser:

    def test_no_operations_prints_help(self, capsys):
        assert main([]) == 0
        assert "free spinning" in capsys.readouterr().out

    def test_help_lists_buttons(self, capsys):
        assert main([]) == 0
        out = capsys.readouterr().out
        assert "    0 previously set button   7 wheel left tilt" in out
        assert "    6 find button            13 thumb wheel pressed" in out
        assert "left button" not in out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(['--version'])
        assert exc.value.code == 0
        assert capsys.readouterr().out.startswith("mxrevo ")

    def test_options(self):
        args = build_parser().parse_args(['-vv', '--device', '/dev/hiddev3', 'free', 'mode'])
        assert args.verbose == 2
        assert args.device == '/dev/hiddev3'
        assert args.operations == ['free', 'mode']

    def test_unknown_option_exits_2(self):
        with pytest.raises(SystemExit) as exc:
            main(['--bogus'])
        assert exc.value.code == 2


class TestExitCodes:

    def test_malformed_token_never_touches_device(self, capsys):
        with patch('mxrevo.device_locator.DeviceLocator') as locator:
            assert main(['free', 'manual=16']) == 1
        locator.assert_not_called()
        assert capsys.readouterr().err.startswith("mxrevo: argument `16' out of range")

    def test_unknown_operation(self, capsys):
        assert main(['fre']) == 1
        assert "unknown option `fre'" in capsys.readouterr().err

    def test_device_not_found(self, capsys):
        locator = MagicMock()
        locator.return_value.locate.side_effect = DeviceNotFound("Hiddev kernel driver not found.")
        with patch('mxrevo.device_locator.DeviceLocator', locator), \
             patch('mxrevo.conf.load_settings', return_value=Settings()):
            assert main(['free']) == 1
        assert capsys.readouterr().err == "mxrevo: Hiddev kernel driver not found.\n"

    def test_ioctl_failure(self, wired, node, capsys):
        node.set_usages = MagicMock(side_effect=OSError(errno.ENODEV, 'No such device'))
        assert main(['free']) == 1
        assert capsys.readouterr().err == (
            "mxrevo: send report 10/6, HIDIOCSUSAGES: No such device\n")
        assert node.closed

    def test_receiver_unplugged_while_waiting(self, wired, node, capsys):
        node.wait_readable = MagicMock(side_effect=OSError(errno.EIO, 'Input/output error'))
        assert main(['dump']) == 1
        assert capsys.readouterr().err == (
            "mxrevo: wait for event on /dev/usb/hiddev0: Input/output error\n")
        assert node.closed

    def test_receiver_unplugged_while_draining(self, wired, node, capsys):
        node.events = [object()]
        node.read_event = MagicMock(side_effect=OSError(errno.EIO, 'Input/output error'))
        assert main(['free']) == 0
        assert node.sent() == [[1, 0x80, 0x56, 0x81, 0, 0]]

    def test_interrupt(self, wired, node, capsys):
        node.wait_readable = MagicMock(side_effect=KeyboardInterrupt)
        assert main(['reconnect']) == 1
        assert node.closed


class TestRuns:

    def test_free(self, wired, node):
        assert main(['free']) == 0
        assert node.sent() == [[1, 0x80, 0x56, 0x81, 0, 0]]
        assert node.closed

    def test_operations_in_order(self, wired, node):
        assert main(['temp-click', 'manual=5,4']) == 0
        assert node.sent() == [
            [1, 0x80, 0x56, 0x02, 0, 0],
            [1, 0x80, 0x56, 0x87, 0x54, 0],
        ]

    def test_battery(self, wired, node, capsys):
        node.replies = [[0x01, 0x81, 0x0D, 73, 0x50, 0]]
        assert main(['battery']) == 0
        assert capsys.readouterr().out == "battery level 73%, charging\n"

    def test_bad_reply_exit_0(self, wired, node, capsys):
        node.replies = [[0x01, 0x81, 0x0C, 73, 0x50, 0]]
        assert main(['battery']) == 0
        assert "bad answer (01 81 0c...)" in capsys.readouterr().out

    def test_experimental_note(self, wired, node, capsys):
        node.identity = DeviceIdentity(LOGITECH, MX_5500)
        assert main(['free']) == 0
        assert "note: MX-5500 support is experimental" in capsys.readouterr().out
        assert node.sent() == [[2, 0x80, 0x56, 0x81, 0, 0]]

    def test_device_option_overrides_config(self, wired):
        with patch('mxrevo.conf.load_settings',
                   return_value=Settings(device='/dev/hiddev1', ack_timeout_ms=0)):
            assert main(['--device', '/dev/hiddev5', 'free']) == 0
        wired.assert_called_once_with('/dev/hiddev5')

    def test_config_device_used(self, wired):
        with patch('mxrevo.conf.load_settings',
                   return_value=Settings(device='/dev/hiddev1', ack_timeout_ms=0)):
            assert main(['free']) == 0
        wired.assert_called_once_with('/dev/hiddev1')


class TestDoctor:

    def test_dispatch(self):
        with patch('mxrevo.doctor.run_doctor', return_value=0) as run_doctor:
            assert main(['--doctor']) == 0
        run_doctor.assert_called_once_with()
