"""
Arm Controller
===============
Sequences every logical arm command through encode, send, settle and
(for position queries) a single read.

Features:
- One command in flight at a time; concurrent calls are rejected
- Fixed settle delays per command kind
- Transport errors reported as results, never raised
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from loguru import logger

from hardware_interface import (
    ArmConfig,
    ArmError,
    ControllerBusy,
    NotConnected,
    TransportSession,
)

from .gcode import (
    Command,
    CommandEncoder,
    Jump,
    Move,
    Number,
    PositioningMode,
    QueryPosition,
    SetGripper,
    SetMode,
    Wait,
    WireFrame,
)
from .response_parser import (
    NOT_CONNECTED,
    WRITE_FAILED,
    ResponseParser,
)


class ControllerState(str, Enum):
    """Controller-level state."""
    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    BUSY = "busy"


@dataclass
class CommandResult:
    """Terminal outcome of one command or connection attempt."""
    command: Optional[Command]
    ok: bool = True
    error: Optional[ArmError] = None
    value: Optional[str] = None
    frame: Optional[WireFrame] = None


class ArmController:
    """
    Drives the arm over a TransportSession.

    Each controller owns exactly one session. Callers that need ordering
    must await each command before issuing the next.

    Usage:
        async with ArmController(ArmConfig(port="/dev/ttyUSB0")) as arm:
            await arm.set_relative_mode()
            await arm.move_linear(10, 0, 5, 300)
            result = await arm.query_position()
    """

    def __init__(
        self,
        config: Optional[ArmConfig] = None,
        session: Optional[TransportSession] = None,
        encoder: Optional[CommandEncoder] = None,
        parser: Optional[ResponseParser] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        notifier: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the controller.

        Args:
            config: Link and pacing configuration
            session: Transport to use, built from config if omitted
            encoder: G-code encoder
            parser: Position reply parser
            sleep: Coroutine used for settle delays and waits
            notifier: Called with a message when a connection attempt fails
        """
        self.config = config or (session.config if session else ArmConfig())
        self.session = session or TransportSession(self.config)
        self.encoder = encoder or CommandEncoder()
        self.parser = parser or ResponseParser()
        self._sleep = sleep
        self._notifier = notifier

        self._connecting = False
        self._busy = False

    @property
    def state(self) -> ControllerState:
        if self._connecting:
            return ControllerState.CONNECTING
        if self._busy:
            return ControllerState.BUSY
        if self.session.is_connected:
            return ControllerState.READY
        return ControllerState.IDLE

    async def __aenter__(self) -> ArmController:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # =========================================================================
    # CONNECTION LIFECYCLE
    # =========================================================================

    async def connect(self, config: Optional[ArmConfig] = None) -> CommandResult:
        """
        Open the serial session.

        Failures are logged and passed to the notifier; the controller
        returns to IDLE and the caller may retry.
        """
        if self._connecting or self.session.is_connected:
            logger.warning("Connect requested while already connected or connecting")
            return CommandResult(command=None)

        if config is not None:
            self.config = config

        self._connecting = True
        try:
            await self.session.open(self.config)
        except ArmError as e:
            message = f"There was an error: {e}"
            logger.error(message)
            if self._notifier:
                self._notifier(message)
            return CommandResult(command=None, ok=False, error=e)
        finally:
            self._connecting = False

        logger.info(f"{self.config.device_id} connected via serial")
        return CommandResult(command=None)

    async def disconnect(self) -> None:
        await self.session.close()

    # =========================================================================
    # COMMAND EXECUTION
    # =========================================================================

    async def execute(self, command: Command) -> CommandResult:
        """
        Run one command through its full cycle.

        Returns immediately with NotConnected (or ControllerBusy) when the
        controller is not ready; nothing is sent in that case.
        """
        state = self.state
        if state != ControllerState.READY:
            if state == ControllerState.BUSY:
                error: ArmError = ControllerBusy("Another command is in flight")
            else:
                error = NotConnected("MeArm not connected")
            logger.warning(f"Rejected {type(command).__name__}: {error}")
            value = NOT_CONNECTED if isinstance(command, QueryPosition) else None
            return CommandResult(command=command, ok=False, error=error, value=value)

        self._busy = True
        try:
            return await self._run_cycle(command)
        finally:
            self._busy = False

    async def _run_cycle(self, command: Command) -> CommandResult:
        if isinstance(command, Wait):
            await self._sleep(command.seconds)
            return CommandResult(command=command)

        frame = self.encoder.encode(command)
        try:
            await self.session.send(frame.to_bytes())
        except ArmError as e:
            logger.error(f"Failed to send {frame}: {e}")
            value = WRITE_FAILED if isinstance(command, QueryPosition) else None
            return CommandResult(command=command, ok=False, error=e, value=value, frame=frame)

        logger.debug(f"Sent command: {frame}")
        await self._sleep(self._settle_ms(command) / 1000.0)

        if not isinstance(command, QueryPosition):
            return CommandResult(command=command, frame=frame)

        response = await self.session.receive()
        value = self.parser.parse(response)
        error = self.parser.error_for(response)
        return CommandResult(
            command=command,
            ok=error is None,
            error=error,
            value=value,
            frame=frame,
        )

    def _settle_ms(self, command: Command) -> float:
        settle = self.config.settle
        if isinstance(command, (Move, Jump)):
            return settle.move_ms
        if isinstance(command, SetGripper):
            return settle.gripper_ms
        if isinstance(command, SetMode):
            return settle.mode_ms
        if isinstance(command, QueryPosition):
            return settle.query_ms
        return 0.0

    # =========================================================================
    # COMMAND SHORTCUTS
    # =========================================================================

    async def move_linear(
        self, x: Number = 100, y: Number = 0, z: Number = 100, feed: Number = 900
    ) -> CommandResult:
        return await self.execute(Move(x, y, z, feed))

    async def jump_to(
        self, x: Number = 100, y: Number = 0, z: Number = 100, feed: Number = 900
    ) -> CommandResult:
        return await self.execute(Jump(x, y, z, feed))

    async def set_gripper(self, angle: Number = 90) -> CommandResult:
        return await self.execute(SetGripper(angle))

    async def open_gripper(self) -> CommandResult:
        return await self.set_gripper(self.config.gripper_open_angle)

    async def close_gripper(self) -> CommandResult:
        return await self.set_gripper(self.config.gripper_close_angle)

    async def set_absolute_mode(self) -> CommandResult:
        return await self.execute(SetMode(PositioningMode.ABSOLUTE))

    async def set_relative_mode(self) -> CommandResult:
        return await self.execute(SetMode(PositioningMode.RELATIVE))

    async def wait(self, seconds: Number = 1) -> CommandResult:
        return await self.execute(Wait(seconds))

    async def query_position(self) -> CommandResult:
        """Request M114 and return the reported text in ``result.value``."""
        return await self.execute(QueryPosition())
