"""
Arm Control Package
====================
G-code command encoding, reply parsing and command orchestration for a
small serial-driven robotic arm.
"""

from .gcode import (
    PositioningMode,
    Move,
    Jump,
    SetGripper,
    SetMode,
    Wait,
    QueryPosition,
    Command,
    WireFrame,
    CommandEncoder,
    format_number,
)
from .response_parser import (
    SENTINEL,
    NO_RESPONSE,
    READ_FAILED,
    WRITE_FAILED,
    NOT_CONNECTED,
    ResponseParser,
)
from .controller import ArmController, CommandResult, ControllerState
from .blocks import BLOCKS, BlockDispatcher, BlockSpec, BlockType

__all__ = [
    "PositioningMode",
    "Move",
    "Jump",
    "SetGripper",
    "SetMode",
    "Wait",
    "QueryPosition",
    "Command",
    "WireFrame",
    "CommandEncoder",
    "format_number",
    "SENTINEL",
    "NO_RESPONSE",
    "READ_FAILED",
    "WRITE_FAILED",
    "NOT_CONNECTED",
    "ResponseParser",
    "ArmController",
    "CommandResult",
    "ControllerState",
    "BLOCKS",
    "BlockDispatcher",
    "BlockSpec",
    "BlockType",
]
