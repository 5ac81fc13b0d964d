"""mxrevo version information."""

__version__ = "0.4.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Version history:
# 0.1.0 - free/click/manual/auto wheel modes over hiddev
# 0.2.0 - battery and mode queries, reconnect, MX-Revolution second firmware
#         revision (046d:c525)
# 0.3.0 - Experimental MX-5500 combo receiver (command prefix 0x02), raw/query/
#         dump/sleep debug operations
# 0.4.0 - Explicit ioctl errors instead of exiting from the transport, reply
#         echo validation as a non-fatal warning, config file, --doctor
