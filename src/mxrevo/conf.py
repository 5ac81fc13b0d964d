"""Tool settings for mxrevo.

Config is read from ~/.config/mxrevo/config.json (XDG-compliant).  It only
tunes how the tool talks to the receiver; wheel settings live in the mouse.

Example::

    {
      "device": "/dev/usb/hiddev2",
      "ack_timeout_ms": 3000,
      "reconnect_timeout_ms": 60000
    }

Usage:
    from mxrevo.conf import load_settings
    settings = load_settings()
    settings.device             # explicit node path or None (scan)
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from typing import Optional

from .mouse import RECONNECT_TIMEOUT_MS
from .report_channel import DEFAULT_ACK_TIMEOUT_MS

log = logging.getLogger(__name__)

# =========================================================================
# Config file location (XDG-compliant)
# =========================================================================

_XDG_CONFIG = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
CONFIG_DIR = os.path.join(_XDG_CONFIG, 'mxrevo')
CONFIG_PATH = os.path.join(CONFIG_DIR, 'config.json')


@dataclass(frozen=True)
class Settings:
    device: Optional[str] = None
    ack_timeout_ms: int = DEFAULT_ACK_TIMEOUT_MS
    reconnect_timeout_ms: int = RECONNECT_TIMEOUT_MS

    def with_device(self, device: Optional[str]) -> Settings:
        """Command-line override; None keeps the configured value."""
        if device is None:
            return self
        return replace(self, device=device)


def load_config(path: Optional[str] = None) -> dict:
    """Load the raw config dict. Returns empty dict on missing/corrupt file."""
    try:
        with open(path or CONFIG_PATH, 'r') as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (json.JSONDecodeError, OSError) as e:
        log.warning("Ignoring config %s: %s", path or CONFIG_PATH, e)
        return {}
    if not isinstance(data, dict):
        log.warning("Ignoring config %s: not a JSON object", path or CONFIG_PATH)
        return {}
    return data


def _timeout(config: dict, key: str, default: int) -> int:
    value = config.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        log.warning("Config %s=%r is not an integer, using %d", key, value, default)
        return default
    return value


def load_settings(path: Optional[str] = None) -> Settings:
    config = load_config(path)
    device = config.get('device')
    if device is not None and not isinstance(device, str):
        log.warning("Config device=%r is not a path, scanning instead", device)
        device = None
    return Settings(
        device=device or None,
        ack_timeout_ms=_timeout(config, 'ack_timeout_ms', DEFAULT_ACK_TIMEOUT_MS),
        reconnect_timeout_ms=_timeout(config, 'reconnect_timeout_ms', RECONNECT_TIMEOUT_MS),
    )
