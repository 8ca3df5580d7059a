"""
Program Blocks
===============
Entry points exposed to a block-based scripting host, one per logical
command, with the argument defaults the host shows to users.

Command blocks resolve to None once the arm has settled; the reporter
block resolves to the reported position text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from .controller import ArmController


class BlockType(str, Enum):
    COMMAND = "command"
    REPORTER = "reporter"


@dataclass(frozen=True)
class BlockSpec:
    """Declaration of one host block."""
    opcode: str
    method: str
    block_type: BlockType = BlockType.COMMAND
    # host argument name -> (controller keyword, default)
    arguments: Dict[str, tuple] = field(default_factory=dict)


_AXES = {
    "X": ("x", 100),
    "Y": ("y", 0),
    "Z": ("z", 100),
    "F": ("feed", 900),
}

BLOCKS: List[BlockSpec] = [
    BlockSpec("connect", "connect"),
    BlockSpec("AbsMode", "set_absolute_mode"),
    BlockSpec("RelMode", "set_relative_mode"),
    BlockSpec("moveLinearly", "move_linear", arguments=dict(_AXES)),
    BlockSpec("Jumpto", "jump_to", arguments=dict(_AXES)),
    BlockSpec("setGripper", "set_gripper", arguments={"ANGLE": ("angle", 90)}),
    BlockSpec("openGripper", "open_gripper"),
    BlockSpec("closeGripper", "close_gripper"),
    BlockSpec("wait", "wait", arguments={"SECONDS": ("seconds", 1)}),
    BlockSpec("reportPosition", "query_position", block_type=BlockType.REPORTER),
]


def to_number(value: Any) -> Any:
    """Coerce a host argument to int or float; hosts often pass text."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        return float(text)


class BlockDispatcher:
    """Routes host block invocations to an ArmController."""

    def __init__(self, controller: ArmController, blocks: Optional[List[BlockSpec]] = None):
        self.controller = controller
        self.blocks = {spec.opcode: spec for spec in (blocks or BLOCKS)}

    @property
    def opcodes(self) -> List[str]:
        return list(self.blocks)

    def resolve_arguments(self, opcode: str, **args: Any) -> Dict[str, Any]:
        """
        Fill defaults and map host argument names to controller keywords.

        Raises:
            KeyError: Unknown opcode
            ValueError: An argument is not numeric
        """
        spec = self.blocks[opcode]
        kwargs = {}
        for name, (keyword, default) in spec.arguments.items():
            kwargs[keyword] = to_number(args.get(name, default))
        unknown = set(args) - set(spec.arguments)
        if unknown:
            logger.warning(f"Ignoring unknown arguments for {opcode}: {sorted(unknown)}")
        return kwargs

    async def run(self, opcode: str, **args: Any) -> Optional[str]:
        """Invoke a block by opcode; returns reporter text or None."""
        spec = self.blocks[opcode]
        kwargs = self.resolve_arguments(opcode, **args)
        result = await getattr(self.controller, spec.method)(**kwargs)
        if spec.block_type == BlockType.REPORTER:
            return result.value
        return None
