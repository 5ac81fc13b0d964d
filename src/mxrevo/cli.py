#!/usr/bin/env python3
"""
mxrevo - Command Line Interface

Entry point for the mxrevo package.
"""

import argparse
import logging
import sys

from mxrevo.__version__ import __version__
from mxrevo.command_codec import BUTTON_NAMES

_EPILOG = """
Operations:
    free                       free spinning mode
    click                      click-to-click mode
    manual[=button[,button]]   manual mode change via button
    auto[=speed[,speed]]       automatic mode change (up, down)
    battery                    query battery status
    mode                       query scroll wheel mode
    reconnect                  initiate reconnection

Prefixing the mode with 'temp-' (i.e. temp-free) switches the mode
temporarily, otherwise it becomes the default mode after power up.

Button numbers:
{buttons}

Debug operations:
    soft-free=v1,v2            free spinning once the wheel moves
    soft-click=v1,v2           click-to-click once the wheel moves
    raw=id,byte,byte,...       send a raw output report
    query[=id[,count]]         read an input report (default 0x10, 6 values)
    dump[=seconds]             print device events (-1 waits forever)
    sleep[=seconds]            pause between operations

Examples:
    mxrevo free               Free spinning, kept after power up
    mxrevo temp-click         Click-to-click until the mouse is switched off
    mxrevo manual=5,4         Front thumb button: free, rear thumb: click
    mxrevo auto=10            Free spinning above 10 clicks/s
    mxrevo battery mode       Query battery level and wheel mode
"""


def button_table() -> str:
    """Two-column listing of the button numbers for the help text."""
    items = [f"{number:>2} {name}" for number, name in sorted(BUTTON_NAMES.items())]
    half = (len(items) + 1) // 2
    rows = []
    for index, left in enumerate(items[:half]):
        right = items[half + index] if half + index < len(items) else ""
        rows.append(f"   {left:<26}{right}".rstrip())
    return "\n".join(rows)


EPILOG = _EPILOG.format(buttons=button_table())


def _setup_logging(verbose: int) -> None:
    if verbose >= 2:
        logging.basicConfig(level=logging.DEBUG, format='[%(levelname)s] %(name)s: %(message)s')
    elif verbose == 1:
        logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING, format='mxrevo: %(message)s')


def _fail(error) -> int:
    print(f"mxrevo: {error}", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mxrevo",
        description="Change the wheel behaviour of Logitech's MX-Revolution mouse.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv)"
    )
    parser.add_argument(
        "-d", "--device",
        metavar="PATH",
        help="hiddev node to use instead of scanning (e.g., /dev/usb/hiddev0)"
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Read settings from FILE instead of ~/.config/mxrevo/config.json"
    )
    parser.add_argument(
        "--doctor",
        action="store_true",
        help="Check hiddev nodes, permissions and dependencies, then exit"
    )
    parser.add_argument(
        "operations",
        nargs="*",
        metavar="OPERATION",
        help="Operations to run in order (see below)"
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.doctor:
        from mxrevo.doctor import run_doctor
        return run_doctor()

    if not args.operations:
        parser.print_help()
        return 0

    return run(args.operations, device=args.device, config=args.config)


def run(tokens, device=None, config=None):
    """Parse every token, acquire the receiver, run the operations."""
    from mxrevo.conf import load_settings
    from mxrevo.device_locator import DeviceLocator
    from mxrevo.errors import MxRevoError
    from mxrevo.mouse import WheelMouse
    from mxrevo.operations import Dispatcher, parse_operations

    try:
        operations = parse_operations(tokens)
    except MxRevoError as e:
        return _fail(e)

    settings = load_settings(config).with_device(device)

    try:
        handle = DeviceLocator(settings.device).locate()
    except MxRevoError as e:
        return _fail(e)

    with handle:
        if handle.model.experimental:
            print(f"note: {handle.model.product} support is experimental")
        mouse = WheelMouse(
            handle.channel(settings.ack_timeout_ms),
            handle.variant,
            settings.reconnect_timeout_ms,
        )
        try:
            Dispatcher(mouse).run(operations)
        except MxRevoError as e:
            return _fail(e)
        except KeyboardInterrupt:
            print("\nInterrupted.")
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
