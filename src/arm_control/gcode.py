"""
G-code Commands
================
Logical arm commands and their line-oriented G-code encoding.

Wire dialect:
    G1 X<x> Y<y> Z<z> F<f>   : Linear move
    G0 X<x> Y<y> Z<z> F<f>   : Rapid move (jump)
    M106 S<angle>            : Set gripper servo angle
    G90                      : Absolute positioning
    G91                      : Relative positioning
    M114                     : Report current position

One command per line, terminated by a single newline. Values are sent
as given; the firmware is responsible for range checks.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Union


Number = Union[int, float]


class PositioningMode(str, Enum):
    """Coordinate interpretation for subsequent moves."""
    ABSOLUTE = "absolute"
    RELATIVE = "relative"


@dataclass(frozen=True)
class Move:
    """Linear-interpolated move to (x, y, z) at feed rate f."""
    x: Number
    y: Number
    z: Number
    feed: Number


@dataclass(frozen=True)
class Jump:
    """Rapid, non-interpolated move to (x, y, z)."""
    x: Number
    y: Number
    z: Number
    feed: Number


@dataclass(frozen=True)
class SetGripper:
    angle: Number


@dataclass(frozen=True)
class SetMode:
    mode: PositioningMode


@dataclass(frozen=True)
class Wait:
    """Pause the program; never transmitted."""
    seconds: Number


@dataclass(frozen=True)
class QueryPosition:
    pass


Command = Union[Move, Jump, SetGripper, SetMode, Wait, QueryPosition]


@dataclass(frozen=True)
class WireFrame:
    """One encoded command line, including its terminator."""
    line: str

    TERMINATOR = "\n"

    @property
    def opcode(self) -> str:
        return self.line.split(" ", 1)[0].strip()

    def to_bytes(self) -> bytes:
        return self.line.encode("ascii")

    def __str__(self) -> str:
        return self.line.rstrip(self.TERMINATOR)


def format_number(value: Number) -> str:
    """
    Render a number in its plain decimal form.

    Integral values drop the fractional part, so 100.0 is sent as "100".
    """
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


class CommandEncoder:
    """Maps Command objects to WireFrames. Pure; performs no I/O."""

    LINEAR_MOVE = "G1"
    RAPID_MOVE = "G0"
    SET_GRIPPER = "M106"
    ABSOLUTE_MODE = "G90"
    RELATIVE_MODE = "G91"
    REPORT_POSITION = "M114"

    def encode(self, command: Command) -> WireFrame:
        """
        Encode a command.

        Raises:
            ValueError: The command has no wire form (Wait)
            TypeError: Not a command
        """
        if isinstance(command, Move):
            return self._frame(self.LINEAR_MOVE, *self._axes(command))
        if isinstance(command, Jump):
            return self._frame(self.RAPID_MOVE, *self._axes(command))
        if isinstance(command, SetGripper):
            return self._frame(self.SET_GRIPPER, f"S{format_number(command.angle)}")
        if isinstance(command, SetMode):
            if command.mode == PositioningMode.ABSOLUTE:
                return self._frame(self.ABSOLUTE_MODE)
            return self._frame(self.RELATIVE_MODE)
        if isinstance(command, QueryPosition):
            return self._frame(self.REPORT_POSITION)
        if isinstance(command, Wait):
            raise ValueError("Wait is executed locally and has no wire form")
        raise TypeError(f"Not an arm command: {command!r}")

    @staticmethod
    def _axes(command: Union[Move, Jump]) -> tuple:
        return (
            f"X{format_number(command.x)}",
            f"Y{format_number(command.y)}",
            f"Z{format_number(command.z)}",
            f"F{format_number(command.feed)}",
        )

    @staticmethod
    def _frame(opcode: str, *fields: str) -> WireFrame:
        return WireFrame(" ".join((opcode,) + fields) + WireFrame.TERMINATOR)
