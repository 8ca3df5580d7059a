"""
Serial Session
===============
Owns the byte-stream connection to the arm's microcontroller.

Features:
- Auto-detection of Arduino-class serial ports
- Exclusive, serialized writes
- Single-shot reads guarded by a transient read lock
- Blocking pyserial calls run off the event loop
"""

from __future__ import annotations

import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Dict, List, Optional

import serial
import serial.tools.list_ports
from loguru import logger

from .exceptions import DeviceUnavailable, NotConnected, OpenError, WriteFailure
from .models import ArmConfig, DeviceResponse, ReadOutcome, SessionState


# USB-serial bridges commonly found on Arduino-compatible boards
ARDUINO_IDENTIFIERS = ("arduino", "ch340", "cp210", "ftdi")
ARDUINO_MANUFACTURERS = ("arduino", "wch")


def _close_abandoned_port(opening: Future) -> None:
    if opening.cancelled() or opening.exception() is not None:
        return
    try:
        opening.result().close()
    except (serial.SerialException, OSError) as e:
        logger.warning(f"Error closing abandoned port: {e}")


class SerialWriter:
    """
    Exclusive write handle for an open port.

    Created when a session connects and dropped when it closes. Writes
    issued through one writer never interleave.
    """

    def __init__(self, port: Any, run: Callable[..., Any]):
        self._port = port
        self._run = run
        self._lock = asyncio.Lock()

    async def write(self, data: bytes) -> int:
        async with self._lock:
            return await self._run(self._write_all, data)

    def _write_all(self, data: bytes) -> int:
        written = self._port.write(data)
        self._port.flush()
        return written


class TransportSession:
    """
    Manages the serial connection to the arm.

    Usage:
        session = TransportSession(ArmConfig(port="/dev/ttyUSB0"))
        await session.open()
        await session.send(b"G90\\n")
        response = await session.receive()
        await session.close()
    """

    def __init__(
        self,
        config: Optional[ArmConfig] = None,
        serial_factory: Callable[..., Any] = serial.Serial,
        port_finder: Optional[Callable[[], Optional[str]]] = None,
    ):
        """
        Initialize the session.

        Args:
            config: Link configuration (port, baud rate, timeouts)
            serial_factory: Callable that opens a port, ``serial.Serial`` by default
            port_finder: Callable returning a port for ``port="auto"``
        """
        self.config = config or ArmConfig()
        self._serial_factory = serial_factory
        self._port_finder = port_finder or self.find_arduino_port

        self._serial: Optional[Any] = None
        self._writer: Optional[SerialWriter] = None
        self._state = SessionState.DISCONNECTED
        self._port_name: Optional[str] = None

        self._read_lock = asyncio.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

        # Statistics
        self._frames_sent = 0
        self._bytes_received = 0
        self._read_failures = 0

    @property
    def state(self) -> SessionState:
        """Get current session state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == SessionState.CONNECTED

    @property
    def writer(self) -> Optional[SerialWriter]:
        return self._writer

    @property
    def read_locked(self) -> bool:
        """True while a receive call holds the read lock."""
        return self._read_lock.locked()

    @property
    def port_name(self) -> Optional[str]:
        return self._port_name

    @property
    def statistics(self) -> Dict[str, Any]:
        """Get communication statistics."""
        return {
            "state": self._state.value,
            "port": self._port_name,
            "frames_sent": self._frames_sent,
            "bytes_received": self._bytes_received,
            "read_failures": self._read_failures,
        }

    @staticmethod
    def list_available_ports() -> List[Dict[str, str]]:
        """
        List all available serial ports.

        Returns:
            List of port information dictionaries
        """
        ports = []
        for port in serial.tools.list_ports.comports():
            ports.append({
                "device": port.device,
                "name": port.name,
                "description": port.description,
                "hwid": port.hwid,
                "manufacturer": port.manufacturer or "Unknown",
            })
        return ports

    @staticmethod
    def find_arduino_port() -> Optional[str]:
        """
        Auto-detect an Arduino serial port.

        Returns:
            Port device path or None if not found
        """
        for port in serial.tools.list_ports.comports():
            if any(ident in (port.description or "").lower() for ident in ARDUINO_IDENTIFIERS):
                logger.info(f"Auto-detected Arduino on {port.device}")
                return port.device
            if any(ident in (port.manufacturer or "").lower() for ident in ARDUINO_MANUFACTURERS):
                logger.info(f"Auto-detected Arduino on {port.device}")
                return port.device
        return None

    def _io_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="serial-io")
        return self._executor

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking call on the session's I/O thread."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._io_executor(), partial(func, *args))

    async def _select_port(self) -> str:
        port = self.config.port
        if port != "auto":
            return port
        try:
            port = await self._run(self._port_finder)
        except (serial.SerialException, OSError) as e:
            logger.error(f"Port enumeration failed: {e}")
            raise DeviceUnavailable(f"Could not enumerate serial ports: {e}") from e
        if not port:
            logger.error("Could not auto-detect Arduino port")
            raise DeviceUnavailable("No serial device found")
        return port

    async def _open_port(self, port: str) -> Any:
        opening = self._io_executor().submit(
            self._serial_factory,
            port=port,
            baudrate=self.config.baudrate,
            timeout=self.config.read_timeout_s,
            write_timeout=self.config.write_timeout_s,
        )
        try:
            return await asyncio.wrap_future(opening)
        except (serial.SerialException, OSError, ValueError) as e:
            logger.error(f"Serial connection failed: {e}")
            raise OpenError(f"Could not open {port}: {e}") from e
        except asyncio.CancelledError:
            # The open call keeps running on the I/O thread; close what it returns.
            opening.add_done_callback(_close_abandoned_port)
            raise

    async def _prepare_port(self, handle: Any, port: str) -> None:
        try:
            # Wait for Arduino reset
            if self.config.reset_delay_s:
                await asyncio.sleep(self.config.reset_delay_s)
            handle.reset_input_buffer()
            handle.reset_output_buffer()
        except (serial.SerialException, OSError) as e:
            handle.close()
            logger.error(f"Serial port setup failed: {e}")
            raise OpenError(f"Could not configure {port}: {e}") from e
        except BaseException:
            handle.close()
            raise

    async def open(self, config: Optional[ArmConfig] = None) -> None:
        """
        Open the serial channel and acquire the writer.

        Args:
            config: Optional replacement configuration

        Raises:
            DeviceUnavailable: No port was found or granted
            OpenError: The port could not be opened or configured
        """
        if self._state == SessionState.CONNECTED:
            logger.warning(f"Session already open on {self._port_name}")
            return
        if self._state == SessionState.CONNECTING:
            raise OpenError("Open already in progress")

        if config is not None:
            self.config = config

        self._state = SessionState.CONNECTING
        logger.info("Requesting serial port...")

        # Any exit short of CONNECTED, cancellation included, leaves the
        # session DISCONNECTED with no port held.
        try:
            port = await self._select_port()
            handle = await self._open_port(port)
            await self._prepare_port(handle, port)
        except BaseException:
            self._state = SessionState.DISCONNECTED
            raise

        self._serial = handle
        self._port_name = port
        self._writer = SerialWriter(handle, self._run)
        self._state = SessionState.CONNECTED
        logger.success(f"Connected to {port} at {self.config.baudrate} baud")

    async def send(self, data: bytes) -> int:
        """
        Write bytes to the device.

        Returns once the transport accepted the write; this is not a device
        acknowledgment.

        Raises:
            NotConnected: The session is not open
            WriteFailure: The transport rejected the write
        """
        writer = self._writer
        if self._state != SessionState.CONNECTED or writer is None:
            raise NotConnected("Serial session is not open")

        try:
            written = await writer.write(data)
        except serial.SerialTimeoutException as e:
            logger.error(f"Write timed out: {e}")
            raise WriteFailure(f"Write timed out: {e}") from e
        except (serial.SerialException, OSError) as e:
            logger.error(f"Failed to write: {e}")
            self._fail()
            raise WriteFailure(str(e)) from e

        self._frames_sent += 1
        logger.trace(f"Wrote {len(data)} bytes")
        return written

    async def receive(self, timeout_s: Optional[float] = None) -> DeviceResponse:
        """
        Wait up to one read window for a single read event.

        Never raises for read problems; the outcome is carried by the
        returned DeviceResponse.

        Args:
            timeout_s: Read window, defaults to the configured read timeout
        """
        handle = self._serial
        if self._state != SessionState.CONNECTED or handle is None:
            logger.warning("Cannot read: not connected")
            return DeviceResponse.failed("not connected")

        window = timeout_s if timeout_s is not None else self.config.read_timeout_s

        async with self._read_lock:
            try:
                raw = await self._run(self._read_once, handle, window)
            except (serial.SerialException, OSError) as e:
                self._read_failures += 1
                logger.error(f"Read error: {e}")
                return DeviceResponse.failed(str(e))

        response = DeviceResponse.from_bytes(raw)
        self._bytes_received += len(raw)

        if response.outcome == ReadOutcome.EMPTY:
            logger.warning(f"No data within {window}s read window")
        elif response.outcome == ReadOutcome.DECODE_ERROR:
            self._read_failures += 1
            logger.error(f"Could not decode response: {response.error}")
        else:
            logger.debug(f"Received: {response.text!r}")
        return response

    @staticmethod
    def _read_once(handle: Any, window: float) -> bytes:
        """Block for the first byte, then take whatever else is buffered."""
        previous = handle.timeout
        handle.timeout = window
        try:
            first = handle.read(1)
            if not first:
                return b""
            waiting = handle.in_waiting
            return first + (handle.read(waiting) if waiting else b"")
        finally:
            handle.timeout = previous

    def _fail(self) -> None:
        """Drop the session after an unrecoverable transport error."""
        self._writer = None
        handle, self._serial = self._serial, None
        self._state = SessionState.FAILED
        if handle is not None:
            try:
                handle.close()
            except (serial.SerialException, OSError) as e:
                logger.warning(f"Error closing failed port: {e}")

    async def close(self) -> None:
        """Release the writer and close the port. Safe to call repeatedly."""
        self._writer = None
        handle, self._serial = self._serial, None

        if handle is not None and handle.is_open:
            try:
                handle.close()
            except (serial.SerialException, OSError) as e:
                logger.warning(f"Error closing port: {e}")

        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

        if self._state != SessionState.DISCONNECTED:
            logger.info("Serial connection closed")
        self._state = SessionState.DISCONNECTED
