"""
mxrevo - scroll wheel control for Logitech's MX-Revolution on Linux

Switches the wheel between free spinning and click-to-click, configures the
triggers that switch it (buttons, wheel speed), and reads back the current
mode and battery level over the kernel's hiddev interface.

Usage:
    # As a library
    from mxrevo import locate, WheelMouse
    with locate() as handle:
        mouse = WheelMouse(handle.channel(), handle.variant)
        mouse.free_spin(temporary=True)
        print(mouse.battery().describe())

    # Command line
    mxrevo free               # free spinning after every power up
    mxrevo temp-click         # click-to-click until power off
    mxrevo battery mode       # query status
"""

from mxrevo.__version__ import __version__
from mxrevo.command_codec import CommandCodec, Variant, WheelMode
from mxrevo.device_locator import DeviceHandle, DeviceLocator, locate
from mxrevo.errors import (
    DeviceNotFound,
    EventReadFailure,
    IoctlFailure,
    MalformedArgument,
    MxRevoError,
    PermissionDenied,
    UnexpectedDeviceReply,
)
from mxrevo.mouse import WheelMouse
from mxrevo.report_channel import ReportChannel

__all__ = [
    # Version
    "__version__",
    # Device
    "DeviceHandle",
    "DeviceLocator",
    "locate",
    "ReportChannel",
    # Protocol
    "CommandCodec",
    "Variant",
    "WheelMode",
    "WheelMouse",
    # Errors
    "MxRevoError",
    "DeviceNotFound",
    "PermissionDenied",
    "IoctlFailure",
    "EventReadFailure",
    "MalformedArgument",
    "UnexpectedDeviceReply",
]
