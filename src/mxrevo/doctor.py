"""Environment health check for mxrevo.

Usage: mxrevo --doctor

Nothing is installed or written; every failed check prints what to do.
"""

from __future__ import annotations

import ctypes.util
import glob
import os
import platform
import sys

from .device_locator import LOGITECH, PATH_TEMPLATES, find_usb_receivers

# ── Distro → package manager mapping ────────────────────────────────────────

_DISTRO_TO_PM: dict[str, str] = {
    # dnf
    'fedora': 'dnf', 'rhel': 'dnf', 'centos': 'dnf',
    'rocky': 'dnf', 'alma': 'dnf', 'nobara': 'dnf',
    # apt
    'ubuntu': 'apt', 'debian': 'apt', 'linuxmint': 'apt',
    'pop': 'apt', 'zorin': 'apt', 'elementary': 'apt',
    'neon': 'apt', 'raspbian': 'apt', 'kali': 'apt',
    # pacman
    'arch': 'pacman', 'manjaro': 'pacman', 'endeavouros': 'pacman',
    'cachyos': 'pacman', 'garuda': 'pacman',
    # others
    'opensuse-tumbleweed': 'zypper', 'opensuse-leap': 'zypper', 'sles': 'zypper',
    'void': 'xbps', 'alpine': 'apk', 'gentoo': 'emerge',
}

# Fallback: ID_LIKE family → package manager
_FAMILY_TO_PM: dict[str, str] = {
    'fedora': 'dnf', 'rhel': 'dnf',
    'debian': 'apt', 'ubuntu': 'apt',
    'arch': 'pacman',
    'suse': 'zypper',
}

_LIBUSB_PACKAGES: dict[str, str] = {
    'dnf': 'libusb1', 'apt': 'libusb-1.0-0', 'pacman': 'libusb',
    'zypper': 'libusb-1_0-0', 'xbps': 'libusb', 'apk': 'libusb',
    'emerge': 'dev-libs/libusb',
}

_INSTALL_CMD: dict[str, str] = {
    'dnf': 'sudo dnf install', 'apt': 'sudo apt install',
    'pacman': 'sudo pacman -S', 'zypper': 'sudo zypper install',
    'xbps': 'sudo xbps-install', 'apk': 'sudo apk add',
    'emerge': 'sudo emerge',
}

UDEV_RULES_DIR = '/etc/udev/rules.d'

UDEV_RULE_HINT = (
    'SUBSYSTEM=="usbmisc", KERNEL=="hiddev[0-9]*", '
    f'ATTRS{{idVendor}}=="{LOGITECH:04x}", MODE="0660", TAG+="uaccess"'
)


# ── Distro detection ────────────────────────────────────────────────────────

def _read_os_release() -> dict[str, str]:
    """Read /etc/os-release into a dict."""
    try:
        return platform.freedesktop_os_release()
    except OSError:
        return {}


def _detect_pkg_manager() -> str | None:
    info = _read_os_release()
    distro_id = info.get('ID', '').lower()

    if pm := _DISTRO_TO_PM.get(distro_id):
        return pm

    # ID_LIKE is a space-separated list of parent distros
    for like in info.get('ID_LIKE', '').lower().split():
        if pm := _FAMILY_TO_PM.get(like):
            return pm

    return None


def _libusb_hint(pm: str | None) -> str:
    if pm in _LIBUSB_PACKAGES:
        return f"{_INSTALL_CMD[pm]} {_LIBUSB_PACKAGES[pm]}"
    lines = [f"  {_INSTALL_CMD[m]} {pkg}" for m, pkg in _LIBUSB_PACKAGES.items()]
    return "install one of:\n" + "\n".join(lines)


# ── Check helpers ────────────────────────────────────────────────────────────

def get_module_version(import_name: str) -> str | None:
    """Version string of an importable module, '' if unversioned, None if missing."""
    try:
        mod = __import__(import_name)
    except ImportError:
        return None
    ver = getattr(mod, '__version__', getattr(mod, 'version', ''))
    if isinstance(ver, tuple):
        ver = '.'.join(str(x) for x in ver)
    return str(ver) if ver else ''


_OK = "\033[32m[OK]\033[0m"
_MISS = "\033[31m[MISSING]\033[0m"
_OPT = "\033[33m[--]\033[0m"


def find_hiddev_nodes() -> list[str]:
    nodes: list[str] = []
    for template in PATH_TEMPLATES:
        nodes.extend(sorted(glob.glob(template.format('[0-9]*'))))
    return nodes


def _check_python() -> bool:
    v = sys.version_info
    ver = f"{v.major}.{v.minor}.{v.micro}"
    if v >= (3, 10):
        print(f"  {_OK}  Python {ver}")
        return True
    print(f"  {_MISS}  Python {ver} (need >= 3.10)")
    return False


def _check_pyusb() -> bool:
    ver = get_module_version('usb')
    if ver is None:
        print(f"  {_MISS}  pyusb — pip install pyusb")
        return False
    ver_str = f" {ver}" if ver else ""
    print(f"  {_OK}  pyusb{ver_str}")
    return True


def _check_libusb(pm: str | None) -> bool:
    """libusb is only needed for the USB bus check, so it is optional."""
    if ctypes.util.find_library('usb-1.0'):
        print(f"  {_OK}  libusb-1.0")
        return True
    print(f"  {_OPT}  libusb-1.0 not found — {_libusb_hint(pm)}")
    return True


def _check_nodes(nodes: list[str]) -> bool:
    if not nodes:
        print(f"  {_MISS}  hiddev nodes — none under /dev/usb/ or /dev/ "
              "(check 'dmesg | grep hiddev')")
        return False
    print(f"  {_OK}  hiddev nodes: {', '.join(nodes)}")
    return True


def _check_access(nodes: list[str]) -> bool:
    if not nodes:
        return False
    denied = [n for n in nodes if not os.access(n, os.R_OK | os.W_OK)]
    if denied:
        print(f"  {_MISS}  no read/write access to {', '.join(denied)}")
        print("         run with sudo, or add a udev rule such as:")
        print(f"         {UDEV_RULE_HINT}")
        return False
    print(f"  {_OK}  read/write access to all hiddev nodes")
    return True


def _check_udev_rules() -> bool:
    """Look for a rule mentioning the Logitech vendor id (informational)."""
    vid = f"{LOGITECH:04x}"
    for path in sorted(glob.glob(os.path.join(UDEV_RULES_DIR, '*.rules'))):
        try:
            with open(path) as f:
                if vid in f.read().lower():
                    print(f"  {_OK}  udev rule ({path})")
                    return True
        except OSError:
            continue
    print(f"  {_OPT}  no udev rule for vendor {vid} — optional, example:")
    print(f"         {UDEV_RULE_HINT}")
    return True


def _check_receiver() -> bool:
    found = find_usb_receivers()
    if found:
        ids = ', '.join(f"{vid:04x}:{pid:04x}" for vid, pid in found)
        print(f"  {_OK}  receiver on USB bus: {ids}")
    else:
        print(f"  {_OPT}  no supported receiver seen on the USB bus")
    return True


# ── Main entry point ─────────────────────────────────────────────────────────

def run_doctor() -> int:
    """Run the health check. Returns 0 if all required checks pass."""
    pm = _detect_pkg_manager()
    distro = _read_os_release().get('PRETTY_NAME', 'Unknown')
    all_ok = True

    print(f"\n  mxrevo doctor — {distro}\n")

    if not _check_python():
        all_ok = False

    print()
    if not _check_pyusb():
        all_ok = False
    _check_libusb(pm)

    print()
    nodes = find_hiddev_nodes()
    if not _check_nodes(nodes):
        all_ok = False
    elif not _check_access(nodes):
        all_ok = False
    _check_udev_rules()

    print()
    _check_receiver()

    print()
    if all_ok:
        print("  All required checks OK.\n")
        return 0
    print("  Some required checks failed.\n")
    return 1
