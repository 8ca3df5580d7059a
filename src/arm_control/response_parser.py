"""
Response Parser
================
Extracts the reported position text from a device reply.

The firmware answers M114 with a line such as ``X:100 Y:0 Z:100`` followed
by ``ok``. Only the text before the first ``ok`` is kept; no attempt is made
to interpret the coordinates.
"""

from __future__ import annotations

from typing import Optional, Union

from hardware_interface import (
    ArmError,
    DecodeError,
    DeviceResponse,
    NoResponse,
    ReadFailure,
    ReadOutcome,
)


SENTINEL = "ok"

NO_RESPONSE = "No response"
READ_FAILED = "ERROR: Read failed"
WRITE_FAILED = "ERROR: Write failed"
NOT_CONNECTED = "ERROR: Not connected"


class ResponseParser:
    """Turns raw device replies into reported text."""

    def __init__(self, sentinel: str = SENTINEL):
        self.sentinel = sentinel

    def extract(self, text: str) -> str:
        """Text before the first sentinel, trimmed. Partial replies pass through."""
        return text.split(self.sentinel, 1)[0].strip()

    def parse(self, response: Union[DeviceResponse, bytes, str]) -> str:
        """
        Parse one read into the reported value.

        Accepts a DeviceResponse, raw bytes or already-decoded text.

        Returns:
            The extracted text, NO_RESPONSE for an empty read or
            READ_FAILED when the read or decode failed
        """
        response = self._coerce(response)
        if response.outcome == ReadOutcome.SUCCESS:
            return self.extract(response.text or "")
        if response.outcome == ReadOutcome.EMPTY:
            return NO_RESPONSE
        return READ_FAILED

    def error_for(self, response: Union[DeviceResponse, bytes, str]) -> Optional[ArmError]:
        """Typed error matching the read outcome, None on success."""
        response = self._coerce(response)
        if response.outcome == ReadOutcome.EMPTY:
            return NoResponse("No bytes received within the read window")
        if response.outcome == ReadOutcome.DECODE_ERROR:
            return DecodeError(response.error or "undecodable response")
        if response.outcome == ReadOutcome.READ_FAILED:
            return ReadFailure(response.error or "read failed")
        return None

    @staticmethod
    def _coerce(response: Union[DeviceResponse, bytes, str]) -> DeviceResponse:
        if isinstance(response, DeviceResponse):
            return response
        if isinstance(response, str):
            response = response.encode(DeviceResponse.ENCODING)
        return DeviceResponse.from_bytes(response)
