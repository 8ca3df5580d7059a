"""
Hardware Interface - Data Models
=================================
Pydantic models for the arm's serial session: connection state, read
outcomes and device configuration.

These models ensure type safety and validation for all hardware communications.
"""

from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional
from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """Serial session lifecycle state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class ReadOutcome(str, Enum):
    """Result of a single read window."""
    SUCCESS = "success"
    EMPTY = "empty"
    DECODE_ERROR = "decode_error"
    READ_FAILED = "read_failed"


# =============================================================================
# DATA PACKET MODELS
# =============================================================================

class DeviceResponse(BaseModel):
    """
    Raw bytes received within one read window, paired with the decode outcome.

    Responses are ephemeral: the parser consumes them immediately.
    """
    timestamp: datetime = Field(default_factory=datetime.now)
    raw: bytes = b""
    outcome: ReadOutcome
    text: Optional[str] = None
    error: Optional[str] = None

    # Strict: a read that cuts a multi-byte character reports DECODE_ERROR.
    # The firmware only emits ASCII.
    ENCODING: ClassVar[str] = "utf-8"

    @classmethod
    def from_bytes(cls, raw: bytes) -> DeviceResponse:
        """Classify and decode the bytes of one read."""
        if not raw:
            return cls(raw=b"", outcome=ReadOutcome.EMPTY)
        try:
            text = raw.decode(cls.ENCODING)
        except UnicodeDecodeError as e:
            return cls(raw=raw, outcome=ReadOutcome.DECODE_ERROR, error=str(e))
        return cls(raw=raw, outcome=ReadOutcome.SUCCESS, text=text)

    @classmethod
    def failed(cls, reason: str) -> DeviceResponse:
        """Response for a read that failed before any bytes arrived."""
        return cls(outcome=ReadOutcome.READ_FAILED, error=reason)

    @property
    def is_success(self) -> bool:
        return self.outcome == ReadOutcome.SUCCESS


# =============================================================================
# DEVICE CONFIGURATION MODELS
# =============================================================================

class SettleProfile(BaseModel):
    """
    Fixed delays (milliseconds) applied after sending each kind of command.

    These are a physical actuation margin, not a protocol acknowledgment.
    """
    move_ms: float = Field(500.0, ge=0)
    gripper_ms: float = Field(300.0, ge=0)
    mode_ms: float = Field(50.0, ge=0)
    query_ms: float = Field(200.0, ge=0)


class ArmConfig(BaseModel):
    """Serial link and pacing configuration for the arm."""
    device_id: str = "mearm"

    # Connection parameters
    port: str = "auto"
    baudrate: int = Field(115200, gt=0)

    # Timeouts
    read_timeout_s: float = Field(1.0, gt=0, description="Read window")
    write_timeout_s: float = Field(1.0, gt=0)

    # Arduino boards reset when the port opens
    reset_delay_s: float = Field(2.0, ge=0)

    # Gripper presets
    gripper_open_angle: float = 120
    gripper_close_angle: float = 30

    settle: SettleProfile = Field(default_factory=SettleProfile)
