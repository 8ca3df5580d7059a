"""
Hardware Interface - Errors
============================
Error taxonomy for the serial link to the arm.

Session-level errors are raised by TransportSession.open/send. The
controller catches them and reports them through CommandResult, so none
of these ever escape a command call.
"""

from __future__ import annotations


class ArmError(Exception):
    """Base class for all arm link errors."""


class DeviceUnavailable(ArmError):
    """No device was granted, or the selection was cancelled."""


class OpenError(ArmError):
    """The serial channel could not be opened or configured."""


class NotConnected(ArmError):
    """Operation attempted without an active session."""


class ControllerBusy(NotConnected):
    """A command arrived while another one was still in flight."""


class WriteFailure(ArmError):
    """The transport rejected a write."""


class ReadFailure(ArmError):
    """The response could not be read."""


class DecodeError(ReadFailure):
    """Bytes were received but could not be decoded as text."""


class NoResponse(ArmError):
    """The read window elapsed with no bytes."""
