"""
MeArm Serial Controller - Program Runner
=========================================
Runs a block program against a MeArm over a serial link.

A program is a YAML document:

    config:
      port: /dev/ttyUSB0
    program:
      - block: RelMode
      - block: moveLinearly
        args: {X: 10, Y: 0, Z: 5, F: 300}
      - block: reportPosition

Each step is executed in order and awaited before the next one starts.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
import argparse

import yaml
from loguru import logger
from pydantic import ValidationError

# Add src to path for imports
SRC_DIR = Path(__file__).parent
PROJECT_ROOT = SRC_DIR.parent
sys.path.insert(0, str(SRC_DIR))

from hardware_interface import ArmConfig, TransportSession
from arm_control import ArmController, BlockDispatcher


def load_program(path: Path) -> Dict[str, Any]:
    """Load a program file; a bare list is treated as the step list."""
    with open(path, 'r') as f:
        document = yaml.safe_load(f) or {}
    if isinstance(document, list):
        document = {"program": document}
    if not isinstance(document, dict):
        raise ValueError(f"Program file must be a mapping or a list: {path}")
    logger.info(f"Program loaded from {path}")
    return document


def build_config(document: Dict[str, Any], args: argparse.Namespace) -> ArmConfig:
    """Merge the program's config section with command-line overrides."""
    raw = dict(document.get("config") or {})
    if args.port:
        raw["port"] = args.port
    if args.baud:
        raw["baudrate"] = args.baud
    return ArmConfig(**raw)


async def run_program(dispatcher: BlockDispatcher, steps: List[Dict[str, Any]]) -> List[Optional[str]]:
    """Execute program steps in order; returns reporter values."""
    reports = []
    for index, step in enumerate(steps, start=1):
        if not isinstance(step, dict) or "block" not in step:
            raise ValueError(f"Step {index} must be a mapping with a 'block' key: {step!r}")
        opcode = step["block"]
        args = step.get("args") or {}
        if not isinstance(args, dict):
            raise ValueError(f"Step {index} args must be a mapping: {args!r}")
        logger.info(f"Step {index}: {opcode} {args}")
        value = await dispatcher.run(opcode, **args)
        if value is not None:
            print(f"{opcode}: {value}")
            reports.append(value)
    return reports


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    logger.remove()  # Remove default handler

    level = "DEBUG" if verbose else "INFO"

    # Console handler with custom format
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True
    )

    # File handler for debug logs
    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)

    logger.add(
        log_dir / "mearm_{time}.log",
        rotation="10 MB",
        retention="7 days",
        level="DEBUG"
    )


def notify_user(message: str) -> None:
    print(f"Connection failed: {message}", file=sys.stderr)


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="MeArm Serial Controller - run block programs over a serial link"
    )
    parser.add_argument(
        "--program", "-p",
        type=Path,
        default=None,
        help="Path to a YAML program file"
    )
    parser.add_argument(
        "--port",
        default=None,
        help="Serial port (default: auto-detect)"
    )
    parser.add_argument(
        "--baud",
        type=int,
        default=None,
        help="Baud rate (default: 115200)"
    )
    parser.add_argument(
        "--list-ports",
        action="store_true",
        help="List available serial ports and exit"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    # Setup logging
    setup_logging(args.verbose)

    if args.list_ports:
        for port in TransportSession.list_available_ports():
            print(f"{port['device']}\t{port['description']}\t{port['manufacturer']}")
        return 0

    if args.program is None:
        parser.error("--program is required unless --list-ports is given")

    try:
        document = load_program(args.program)
        config = build_config(document, args)
    except (OSError, ValueError, yaml.YAMLError, ValidationError) as e:
        logger.error(f"Could not load program: {e}")
        return 2

    controller = ArmController(config, notifier=notify_user)
    dispatcher = BlockDispatcher(controller)

    connected = await controller.connect()
    if not connected.ok:
        return 1

    try:
        await run_program(dispatcher, document.get("program") or [])
    except (KeyError, ValueError) as e:
        logger.error(f"Program error: {e}")
        return 2
    finally:
        await controller.disconnect()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
