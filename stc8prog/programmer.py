"""
Programmer module for STC8 programmer.
Drives an ISP session with the chip's boot loader over a transport.
"""

import contextlib
import enum
import logging
import struct
from typing import Callable, NamedTuple, Optional

from .codec import FrameCodec, checksum
from .config import (
    DEFAULT_BAUDRATE,
    ERASE_TIMEOUT,
    ERASE_TIMEOUT_RANGE,
    RESPONSE_TIMEOUT,
    STATUS_CHIP_ID,
    STATUS_CMD,
    STATUS_VERSION,
    SUPPORTED_BAUDRATES,
    SYNC_BAUDRATE,
    SYNC_BYTE,
    SYNC_CYCLES,
    SYNC_PARITY,
    SYNC_TIMEOUT,
    ChipModel
)
from .exceptions import (
    STC8ProgException,
    BaudNegotiationException,
    CancelledException,
    EraseRejectedException,
    EraseTimeoutException,
    FrameCorruptException,
    ImageTooLargeException,
    InvalidBaudrateException,
    InvalidStateException,
    NoChipException,
    ProgramRejectedException,
    TimeoutException,
    VerifyMismatchException
)
from .hexfile import PAD_BYTE
from .registry import ChipRegistry
from .transport import Transport

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = 'idle'
    SYNCING = 'syncing'
    DETECTED = 'detected'
    BAUD_SWITCHED = 'baud switched'
    READY = 'ready'
    ERASING = 'erasing'
    PROGRAMMING = 'programming'
    DONE = 'done'
    FAILED = 'failed'


class ChipStatus(NamedTuple):
    chip_id: int
    version: Optional[str]
    frequency: Optional[int]


def reload_value(baudrate: int, fuser: int = 24000000) -> int:
    """UART timer reload value the chip needs for the given baudrate."""
    return (65536 - fuser // 4 // baudrate) & 0xFFFF


def parse_status(body: bytes) -> ChipStatus:
    """
    Decode the status frame the chip answers the sync bytes with.

    Args:
        body: Frame body, index 0 being the command echo

    Returns:
        Chip code plus boot loader version and clock when present
    """
    if len(body) < STATUS_CHIP_ID + 2:
        raise FrameCorruptException(f'status frame too short ({len(body)} bytes)')

    chip_id = (body[STATUS_CHIP_ID] << 8) | body[STATUS_CHIP_ID + 1]
    frequency = (body[1] << 24) | (body[2] << 16) | (body[3] << 8)

    version = None
    if len(body) > STATUS_CHIP_ID + 2:
        raw = body[STATUS_VERSION]
        version = f'{raw >> 4}.{raw & 0x0F}.{body[STATUS_CHIP_ID + 2]}{chr(body[STATUS_VERSION + 1])}'
    return ChipStatus(chip_id, version, frequency)


class Programmer:
    """STC8 ISP session controller."""

    def __init__(self, transport: Transport, registry: Optional[ChipRegistry] = None,
                 debug: bool = False, trace: Optional[Callable[[str], None]] = None,
                 progress: Optional[Callable[[int, int], None]] = None, cancel_event=None,
                 sync_cycles: int = SYNC_CYCLES, sync_timeout: float = SYNC_TIMEOUT,
                 response_timeout: float = RESPONSE_TIMEOUT, erase_timeout: float = ERASE_TIMEOUT):
        """
        Initialize the programmer on an already opened transport.

        Args:
            transport: Transport connected to the chip, closed when the session ends
            registry: Chip registry, defaults to the built-in tables
            debug: Trace every frame sent and received
            trace: Callable receiving the trace lines
            progress: Callable receiving (bytes written, total) after every chunk
            cancel_event: threading.Event-like flag checked between steps
            sync_cycles: Number of sync bytes sent before giving up on detection
            sync_timeout: Wait for an answer after each sync byte, in seconds
            response_timeout: Wait for an answer to a regular command, in seconds
            erase_timeout: Wait for the erase acknowledgment, clamped to 5..15 seconds
        """
        self.transport = transport
        self.codec = FrameCodec(transport, debug=debug, trace=trace)
        self.registry = registry or ChipRegistry()
        self.progress = progress
        self.cancel_event = cancel_event
        self.sync_cycles = sync_cycles
        self.sync_timeout = sync_timeout
        self.response_timeout = response_timeout
        low, high = ERASE_TIMEOUT_RANGE
        self.erase_timeout = min(max(erase_timeout, low), high)

        self.state = SessionState.IDLE
        self.failure = None
        self.status = None
        self.chip_id = None
        self.model = None
        self.protocol = None
        self.baudrate = None
        self.serial_number = None
        self.offset = 0

    def _fail(self, error: STC8ProgException) -> None:
        if self.state != SessionState.FAILED:
            logger.debug(f"Session failed in state {self.state.value}: {error}")
            self.state = SessionState.FAILED
            self.failure = error.kind

    def _check_cancel(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise CancelledException()

    @contextlib.contextmanager
    def _step(self, operation: str, *states: SessionState):
        if self.state not in states:
            raise InvalidStateException(operation, self.state.value)
        try:
            self._check_cancel()
            yield
        except STC8ProgException as e:
            self._fail(e)
            raise

    def _sync(self) -> bytes:
        corrupt = 0
        for _ in range(self.sync_cycles):
            self._check_cancel()
            self.codec.write_raw(SYNC_BYTE)
            try:
                cmd, payload = self.codec.recv(self.sync_timeout)
            except TimeoutException:
                continue
            except FrameCorruptException:
                corrupt += 1
                if corrupt > 1:
                    raise
                logger.debug("Corrupt frame while syncing, retrying")
                continue

            if cmd == STATUS_CMD:
                return bytes([cmd]) + payload
            logger.debug(f"Ignoring command {cmd:#04x} while syncing")

        raise NoChipException()

    def detect(self, dtr: Optional[bool] = None) -> ChipModel:
        """
        Sync with the boot loader and identify the chip.

        The chip only answers while it is entering ISP mode, so power has to be
        cycled while this runs.

        Args:
            dtr: Level to drive DTR to before syncing (optional)

        Returns:
            The detected chip model
        """
        with self._step('detect', SessionState.IDLE):
            self.state = SessionState.SYNCING
            self.transport.configure(SYNC_BAUDRATE, 8, SYNC_PARITY, 1)
            if dtr is not None:
                self.transport.set_dtr(dtr)
            self.transport.flush_input()

            self.status = parse_status(self._sync())
            self.chip_id = self.status.chip_id
            logger.debug(f"Chip code {self.chip_id:04x}, boot loader {self.status.version}, "
                         f"clock {self.status.frequency / 1000000:.3f}MHz")

            self.model = self.registry.model(self.chip_id)
            logger.info(f"Chip model: {self.model.name}, flash {self.model.flash_size_kb}KB")
            self.protocol = self.registry.protocol(self.model)
            logger.info(f"Protocol: {self.protocol.name}")
            self.state = SessionState.DETECTED
            return self.model

    def _expect(self, cmd: int, timeout: float) -> bytes:
        ack, payload = self.codec.recv(timeout)
        if ack != cmd:
            raise FrameCorruptException(f'expected answer {cmd:#04x}, got {ack:#04x}')
        return payload

    def switch_baudrate(self, baudrate: int) -> None:
        """
        Move chip and host to a new baudrate and confirm it with a ping.

        Args:
            baudrate: One of SUPPORTED_BAUDRATES

        Raises:
            BaudNegotiationException: If the chip refuses or the ping fails
        """
        with self._step('switch baudrate', SessionState.DETECTED):
            if baudrate not in SUPPORTED_BAUDRATES:
                raise InvalidBaudrateException(baudrate)

            protocol = self.protocol
            reload = reload_value(baudrate, protocol.fuser)
            logger.debug(f"Reload value {reload:#06x} for {baudrate} baud")
            payload = bytes(protocol.baud_prefix) + struct.pack('>H', reload) + bytes(protocol.baud_trim)
            try:
                self.codec.send(protocol.cmd_baud_switch, payload)
                # answered at the old baudrate
                self._expect(protocol.cmd_baud_switch, self.response_timeout)
            except (TimeoutException, FrameCorruptException) as e:
                raise BaudNegotiationException(baudrate, f'switch not acknowledged ({e})')

            self.transport.configure(baudrate, 8, SYNC_PARITY, 1)
            self.state = SessionState.BAUD_SWITCHED

            try:
                self.codec.send(protocol.cmd_baud_verify, b'\x00\x00' + bytes(protocol.cmd_magic))
                self._expect(protocol.cmd_baud_verify, self.response_timeout)
            except (TimeoutException, FrameCorruptException) as e:
                raise BaudNegotiationException(baudrate, f'ping at new baudrate failed ({e})')

            self.baudrate = baudrate
            logger.info(f"Switched to {baudrate} baud")
            self.state = SessionState.READY

    def erase(self) -> None:
        """
        Mass erase the chip's flash.

        Raises:
            EraseTimeoutException: If the chip takes longer than erase_timeout
            EraseRejectedException: If the chip answers with another command
        """
        with self._step('erase', SessionState.READY):
            protocol = self.protocol
            self.state = SessionState.ERASING
            self.codec.send(protocol.cmd_erase, b'\x00\x00' + bytes(protocol.cmd_magic))
            try:
                cmd, payload = self.codec.recv(self.erase_timeout)
            except TimeoutException:
                raise EraseTimeoutException(self.erase_timeout)
            if cmd != protocol.cmd_erase:
                raise EraseRejectedException(cmd)

            # the erase answer carries the chip's unique id
            if len(payload) >= 7:
                self.serial_number = payload[:7].hex().upper()
                logger.info(f"Chip serial number: {self.serial_number}")
            logger.info("Flash erased")
            self.state = SessionState.READY

    def check_image_size(self, image: bytes) -> None:
        """Reject images that don't fit the detected chip, or any known chip before detection."""
        if self.model is not None:
            capacity = self.model.flash_size_kb * 1024
        else:
            capacity = self.registry.max_flash_size()
        if len(image) > capacity:
            raise ImageTooLargeException(len(image), capacity)

    def program(self, image: bytes) -> None:
        """
        Write an image to flash starting at address 0.

        The image is sent in chunks, each acknowledged before the next goes
        out. The last acknowledgment carries the chip's 16-bit sum over the
        written range, which must match the image.

        Args:
            image: Firmware image, padded with 0xFF to the chunk size

        Raises:
            ProgramRejectedException: If a chunk is not acknowledged
            VerifyMismatchException: If the chip's sum doesn't match
        """
        with self._step('program', SessionState.READY):
            protocol = self.protocol
            chunk_size = protocol.chunk_size
            self.check_image_size(image)

            image = bytes(image)
            image += bytes([PAD_BYTE]) * (-len(image) % chunk_size)
            if not image:
                logger.warning("Empty image, nothing to program")
                self.state = SessionState.DONE
                return

            total = len(image)
            expected = checksum(image)
            self.state = SessionState.PROGRAMMING
            self.offset = 0
            payload = b''

            logger.debug(f"Writing {total} bytes in {total // chunk_size} chunks")
            for offset in range(0, total, chunk_size):
                self._check_cancel()
                cmd = protocol.cmd_write_begin if offset == 0 else protocol.cmd_write_cont
                chunk = image[offset:offset + chunk_size]
                self.codec.send(cmd, struct.pack('>H', offset) + bytes(protocol.cmd_magic) + chunk)
                try:
                    ack, payload = self.codec.recv(self.response_timeout)
                except TimeoutException as e:
                    raise ProgramRejectedException(offset, str(e))
                if ack != protocol.ack_write or not payload or payload[0] != protocol.ack_write_magic:
                    raise ProgramRejectedException(offset, f'unexpected answer {ack:#04x} {payload[:1].hex()}')

                self.offset = offset + chunk_size
                if self.progress:
                    self.progress(self.offset, total)

            reported = None
            if len(payload) >= 3:
                reported, = struct.unpack('>H', payload[1:3])
            if reported != expected:
                raise VerifyMismatchException(expected, reported)

            logger.info(f"Programmed {total} bytes, checksum {expected:#06x}")
            self.state = SessionState.DONE

    def terminate(self) -> None:
        """Tell the chip to leave ISP mode and run the application."""
        with self._step('terminate', SessionState.READY, SessionState.DONE):
            self.codec.send(self.protocol.cmd_terminate)
            logger.info("Sent termination command")

    def run(self, image: Optional[bytes] = None, baudrate: int = DEFAULT_BAUDRATE,
            erase: bool = False, terminate: bool = False, dtr: Optional[bool] = None) -> ChipModel:
        """
        Run a whole session: detect, switch baudrate, erase, program, terminate.

        The transport is closed whatever the outcome.

        Args:
            image: Firmware image to program (optional)
            baudrate: Programming baudrate
            erase: Erase flash before programming
            terminate: Start the application when done
            dtr: Level to drive DTR to before syncing (optional)

        Returns:
            The detected chip model
        """
        with self.transport:
            with self._step('start', SessionState.IDLE):
                if baudrate not in SUPPORTED_BAUDRATES:
                    raise InvalidBaudrateException(baudrate)
                if image:
                    self.check_image_size(image)

            self.detect(dtr)
            self.switch_baudrate(baudrate)

            if image:
                with self._step('check image', SessionState.READY):
                    self.check_image_size(image)

            if erase:
                self.erase()
            if image:
                self.program(image)
            if terminate:
                self.terminate()
            return self.model
