"""
Hardware Interface Package
===========================
Communication layer for the arm's microcontroller:
- Serial session lifecycle (open, write, read, close)
- Read outcomes and link configuration models
- Error taxonomy for the link

This package is the only place that touches the physical channel.
"""

from .exceptions import (
    ArmError,
    DeviceUnavailable,
    OpenError,
    NotConnected,
    ControllerBusy,
    WriteFailure,
    ReadFailure,
    DecodeError,
    NoResponse,
)
from .models import (
    SessionState,
    ReadOutcome,
    DeviceResponse,
    SettleProfile,
    ArmConfig,
)

# higher-level managers
from .serial_session import SerialWriter, TransportSession

__all__ = [
    "ArmError",
    "DeviceUnavailable",
    "OpenError",
    "NotConnected",
    "ControllerBusy",
    "WriteFailure",
    "ReadFailure",
    "DecodeError",
    "NoResponse",
    "SessionState",
    "ReadOutcome",
    "DeviceResponse",
    "SettleProfile",
    "ArmConfig",
    "SerialWriter",
    "TransportSession",
]
