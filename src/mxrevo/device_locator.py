"""
hiddev node discovery for Logitech MX-Revolution receivers.

Supported devices:
- Logitech: VID=0x046D, PID=0xC51A  (MX-Revolution, RR41.01_B0025)
- Logitech: VID=0x046D, PID=0xC525  (MX-Revolution, RQR02.00_B0020)
- Logitech: VID=0x046D, PID=0xC71C  (MX-5500 keyboard/mouse combo, experimental)

Nodes are tried under both udev naming conventions, ``/dev/usb/hiddevN``
first, then ``/dev/hiddevN``, N = 0..15.  The first node that reports a
supported vendor/product pair is kept open; every other opened node is
closed before moving on.
"""

from __future__ import annotations

import errno
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

import usb.core

from .command_codec import Variant
from .errors import DeviceNotFound, PermissionDenied
from .hiddev import (
    HIDDEV_FLAG_REPORT,
    HIDDEV_FLAG_UREF,
    DeviceIdentity,
    HiddevTransport,
    HidTransport,
)
from .report_channel import DEFAULT_ACK_TIMEOUT_MS, ReportChannel

log = logging.getLogger(__name__)

LOGITECH = 0x046D
MX_REVOLUTION = 0xC51A
MX_REVOLUTION2 = 0xC525
MX_5500 = 0xC71C

PATH_TEMPLATES: Tuple[str, ...] = ('/dev/usb/hiddev{}', '/dev/hiddev{}')
MAX_NODES = 16

# The one handle this process may hold open at a time
_live_handle: Optional[DeviceHandle] = None


@dataclass(frozen=True)
class DeviceModel:
    """Registry entry for a supported receiver."""
    vendor: str
    product: str
    variant: Variant = Variant.STANDARD
    experimental: bool = False


KNOWN_DEVICES: dict[tuple[int, int], DeviceModel] = {
    (LOGITECH, MX_REVOLUTION): DeviceModel(
        vendor="Logitech", product="MX-Revolution",
    ),
    # Second receiver firmware revision, same protocol
    (LOGITECH, MX_REVOLUTION2): DeviceModel(
        vendor="Logitech", product="MX-Revolution",
    ),
    # Keyboard/mouse combo receiver: commands start with 0x02 instead of 0x01
    (LOGITECH, MX_5500): DeviceModel(
        vendor="Logitech", product="MX-5500",
        variant=Variant.COMBO, experimental=True,
    ),
}


@dataclass(frozen=True)
class CandidateDevice:
    """A node that opened and identified itself during the scan."""
    path: str
    vendor_id: int
    product_id: int

    def ids(self) -> str:
        return f"{self.vendor_id:04x}:{self.product_id:04x}"


@dataclass(frozen=True)
class DeviceHandle:
    """Exclusive ownership of the selected node.

    The variant (and with it the command prefix byte) is fixed here and
    never changes for the lifetime of the handle.
    """
    path: str
    vendor_id: int
    product_id: int
    model: DeviceModel
    transport: HidTransport = field(compare=False, repr=False)

    @property
    def variant(self) -> Variant:
        return self.model.variant

    def channel(self, ack_timeout_ms: int = DEFAULT_ACK_TIMEOUT_MS) -> ReportChannel:
        return ReportChannel(self.transport, ack_timeout_ms)

    def close(self) -> None:
        self.transport.close()
        if _live_handle is self:
            _set_live(None)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def _set_live(handle: Optional[DeviceHandle]) -> None:
    global _live_handle
    _live_handle = handle


def classify(identity: DeviceIdentity) -> Optional[DeviceModel]:
    """Return the registry entry for a node identity, or None."""
    return KNOWN_DEVICES.get((identity.vendor_id, identity.product_id))


def supported_ids() -> List[str]:
    return [f"{vid:04x}:{pid:04x}" for vid, pid in KNOWN_DEVICES]


def find_usb_receivers() -> List[Tuple[int, int]]:
    """List supported receivers visible on the USB bus (via pyusb).

    Used only to sharpen the not-found diagnosis; an unavailable libusb
    backend yields an empty list.
    """
    found = []
    try:
        for vid, pid in KNOWN_DEVICES:
            if usb.core.find(idVendor=vid, idProduct=pid) is not None:
                found.append((vid, pid))
    except usb.core.NoBackendError:
        log.debug("No libusb backend; skipping USB bus check")
    except usb.core.USBError as e:
        log.debug("USB bus check failed: %s", e)
    return found


# =========================================================================
# Scan
# =========================================================================

class DeviceLocator:
    """Finds, opens and prepares the receiver's hiddev node.

    Args:
        device_path: Try only this node instead of scanning both templates.
        transport_factory: Builds a transport for a path (tests inject fakes).
    """

    def __init__(self, device_path: Optional[str] = None,
                 transport_factory: Callable[[str], HidTransport] = HiddevTransport):
        self.device_path = device_path
        self._transport_factory = transport_factory
        # Scan bookkeeping for the diagnosis
        self.candidates: List[CandidateDevice] = []
        self.denied: List[str] = []
        self.missing: List[str] = []

    def candidate_paths(self) -> Iterator[str]:
        if self.device_path:
            yield self.device_path
            return
        for template in PATH_TEMPLATES:
            for index in range(MAX_NODES):
                yield template.format(index)

    def locate(self) -> DeviceHandle:
        """Acquire the first supported node.

        Raises:
            PermissionDenied: a node exists but could not be opened.
            DeviceNotFound: nothing matched.
            RuntimeError: a handle acquired earlier in this process is still open.
        """
        live = _live_handle
        if live is not None and live.transport.is_open:
            raise RuntimeError(f"{live.path} is already acquired")

        self.candidates.clear()
        self.denied.clear()
        self.missing.clear()

        for path in self.candidate_paths():
            handle = self._try_node(path)
            if handle is not None:
                self._prepare(handle)
                _set_live(handle)
                return handle

        raise self.diagnose()

    def _try_node(self, path: str) -> Optional[DeviceHandle]:
        transport = self._transport_factory(path)
        try:
            transport.open()
        except OSError as e:
            if e.errno in (errno.EACCES, errno.EPERM):
                self.denied.append(path)
            elif e.errno == errno.ENOENT:
                self.missing.append(path)
            log.debug("%s: %s", path, e.strerror or e)
            return None

        try:
            identity = transport.device_info()
        except OSError as e:
            log.debug("%s: HIDIOCGDEVINFO failed: %s", path, e.strerror or e)
            transport.close()
            return None

        candidate = CandidateDevice(path, identity.vendor_id, identity.product_id)
        self.candidates.append(candidate)

        model = classify(identity)
        if model is None:
            log.debug("%s: %s is not a supported device", path, candidate.ids())
            transport.close()
            return None

        log.info("Found %s %s [%s] at %s", model.vendor, model.product,
                 candidate.ids(), path)
        return DeviceHandle(
            path=path,
            vendor_id=identity.vendor_id,
            product_id=identity.product_id,
            model=model,
            transport=transport,
        )

    @staticmethod
    def _prepare(handle: DeviceHandle) -> None:
        """Non-blocking reads + report-granular events, once per acquisition."""
        try:
            handle.transport.set_nonblocking()
        except OSError as e:
            log.warning("fcntl(O_NONBLOCK): %s", e.strerror or e)
        try:
            handle.transport.set_flags(HIDDEV_FLAG_UREF | HIDDEV_FLAG_REPORT)
        except OSError as e:
            log.warning("HIDIOCSFLAG: %s", e.strerror or e)

    # =====================================================================
    # Diagnosis
    # =====================================================================

    def diagnose(self) -> DeviceNotFound:
        """Explain why the last scan found nothing."""
        on_bus = find_usb_receivers()
        hint = ""
        if on_bus:
            ids = ', '.join(f"{vid:04x}:{pid:04x}" for vid, pid in on_bus)
            hint = f"\nReceiver {ids} is on the USB bus but not reachable via hiddev."

        if self.denied:
            base = re.sub(r"\d+$", "", self.denied[0])
            return PermissionDenied(
                f"No permission to access hiddev ({base}0-{MAX_NODES - 1})\n"
                f"Try 'sudo mxrevo ...'" + hint
            )

        if self.candidates:
            tried = ', '.join(f"{c.path} [{c.ids()}]" for c in self.candidates)
            return DeviceNotFound(
                f"No Logitech MX-Revolution ({' or '.join(supported_ids())}) found.\n"
                f"Checked: {tried}" + hint
            )

        if self.device_path:
            return DeviceNotFound(f"{self.device_path}: no such device node" + hint)

        return DeviceNotFound(_DRIVER_MISSING + hint)


_DRIVER_MISSING = (
    "Hiddev kernel driver not found.  Check with 'dmesg | grep hiddev'\n"
    "whether it is present in the kernel.  If it is, make sure that the device\n"
    "nodes (either /dev/usb/hiddev0-15 or /dev/hiddev0-15) are present.  You\n"
    "can create them with\n"
    "\n"
    "\tmkdir /dev/usb\n"
    "\tmknod /dev/usb/hiddev0 c 180 96\n"
    "\tmknod /dev/usb/hiddev1 c 180 97\n\t...\n"
    "\n"
    "or better by adding a rule to the udev database in\n"
    "/etc/udev/rules.d/10-local.rules\n"
    "\n"
    '\tSUBSYSTEM=="usbmisc", KERNEL=="hiddev[0-9]*", NAME="usb/%k", MODE="0660"'
)


def locate(device_path: Optional[str] = None) -> DeviceHandle:
    """Convenience wrapper: scan with the real hiddev transport."""
    return DeviceLocator(device_path).locate()
