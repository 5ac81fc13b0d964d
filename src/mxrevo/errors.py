"""Exception hierarchy for mxrevo.

Fatal errors propagate up to ``cli.main``, which prints them and exits 1.
``UnexpectedDeviceReply`` is the only one handled locally (printed as a
warning by the dispatcher).
"""

from __future__ import annotations


class MxRevoError(Exception):
    """Base class for all mxrevo errors."""


class DeviceNotFound(MxRevoError):
    """No hiddev node matched a supported device."""


class PermissionDenied(DeviceNotFound):
    """A hiddev node exists but could not be opened (EACCES/EPERM)."""


class MalformedArgument(MxRevoError, ValueError):
    """An operation token or numeric argument failed to parse or is out of range."""


class IoctlFailure(MxRevoError):
    """The kernel rejected a report transaction.

    Carries enough context to reproduce the classic message format::

        send report 10/6, HIDIOCSUSAGES: No such device
    """

    def __init__(self, action: str, report_id: int, count: int,
                 ioctl_name: str, error: OSError):
        self.action = action
        self.report_id = report_id
        self.count = count
        self.ioctl_name = ioctl_name
        self.error = error
        reason = error.strerror or str(error)
        super().__init__(
            f"{action} report {report_id:02x}/{count}, {ioctl_name}: {reason}"
        )


class UnexpectedDeviceReply(MxRevoError):
    """A query reply failed echo validation."""

    def __init__(self, reply):
        self.reply = tuple(reply)
        head = ' '.join(f"{b & 0xFF:02x}" for b in self.reply[:3])
        super().__init__(f"bad answer ({head}...)")


class EventReadFailure(MxRevoError):
    """Waiting for or reading a device event failed (e.g. receiver unplugged)."""

    def __init__(self, action: str, path: str, error: OSError):
        self.action = action
        self.path = path
        self.error = error
        reason = error.strerror or str(error)
        super().__init__(f"{action} {path}: {reason}")
