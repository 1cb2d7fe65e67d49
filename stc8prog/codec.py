"""
Frame codec module for STC8 programmer.
Encodes host frames and decodes chip frames of the STC ISP protocol.

A frame on the wire looks like::

    46 B9 | dir | len_hi len_lo | cmd payload... | sum_hi sum_lo | 16

``dir`` is 0x6A from host to chip and 0x68 from chip to host. The length
counts every byte from ``dir`` through the trailing 0x16, and the 16-bit
sum covers ``dir`` through the end of the payload.
"""

import logging
import struct
import time
from typing import Callable, Optional, Tuple

from .config import BYTE_TIMEOUT, RESPONSE_TIMEOUT, Frame
from .exceptions import FrameCorruptException, TimeoutException
from .transport import Transport

logger = logging.getLogger(__name__)
trace_logger = logging.getLogger('stc8prog.trace')


def checksum(data: bytes) -> int:
    """Unsigned 16-bit modular sum of data."""
    return sum(data) & 0xFFFF


def format_trace(prefix: str, data: bytes) -> str:
    return prefix + ' ' + ' '.join(f'{b:02X}' for b in data)


def encode(cmd: int, payload: bytes = b'', direction: int = Frame.DIR_HOST) -> bytes:
    """
    Build a complete frame around a command and its payload.

    Args:
        cmd: Command byte
        payload: Command payload
        direction: Direction byte, host to chip by default

    Returns:
        Frame bytes ready to be written
    """
    body = bytes([cmd]) + bytes(payload)
    length = len(body) + Frame.OVERHEAD
    if length > 0xFFFF:
        raise ValueError(f'Payload of {len(payload)} bytes does not fit into a frame')

    covered = bytes([direction]) + struct.pack('>H', length) + body
    return Frame.HEADER + covered + struct.pack('>HB', checksum(covered), Frame.TRAILER)


def _check_length(length: int, max_body: Optional[int]) -> None:
    if length < Frame.OVERHEAD + 1:
        raise FrameCorruptException(f'length {length} too short')
    if max_body is not None and length - Frame.OVERHEAD > max_body:
        raise FrameCorruptException(f'length {length} exceeds limit')


def _unpack(covered: bytes) -> Tuple[int, bytes]:
    # covered runs from the direction byte through the trailer
    if covered[-1] != Frame.TRAILER:
        raise FrameCorruptException(f'missing trailer, got {covered[-1]:#04x}')

    expected, = struct.unpack('>H', covered[-3:-1])
    actual = checksum(covered[:-3])
    if expected != actual:
        raise FrameCorruptException(f'checksum {actual:#06x} does not match {expected:#06x}')

    body = covered[3:-3]
    return body[0], bytes(body[1:])


def decode(frame: bytes, direction: int = Frame.DIR_CHIP,
           max_body: Optional[int] = None) -> Tuple[int, bytes]:
    """
    Validate a complete frame and split it into command and payload.

    Args:
        frame: Frame bytes starting with the 46 B9 header
        direction: Expected direction byte, chip to host by default
        max_body: Upper bound for command plus payload length (optional)

    Returns:
        Tuple of (command byte, payload)

    Raises:
        FrameCorruptException: If any part of the frame doesn't validate
    """
    frame = bytes(frame)
    if len(frame) < 5:
        raise FrameCorruptException('truncated header')
    if frame[:2] != Frame.HEADER or frame[2] != direction:
        raise FrameCorruptException('bad header')

    length, = struct.unpack('>H', frame[3:5])
    _check_length(length, max_body)
    if len(frame) - len(Frame.HEADER) != length:
        raise FrameCorruptException(f'length field says {length}, frame has {len(frame) - 2}')

    return _unpack(frame[2:])


class FrameCodec:
    """Sends and receives frames over a transport."""

    def __init__(self, transport: Transport, debug: bool = False,
                 trace: Optional[Callable[[str], None]] = None,
                 byte_timeout: float = BYTE_TIMEOUT, max_body: int = Frame.MAX_BODY):
        """
        Initialize the codec.

        Args:
            transport: Open transport to talk over
            debug: Emit a trace line for every frame
            trace: Callable receiving trace lines, defaults to the stc8prog.trace logger
            byte_timeout: Silence that ends a partial read, in seconds
            max_body: Largest accepted command plus payload length
        """
        self.transport = transport
        self.debug = debug
        self.trace = trace or trace_logger.info
        self.byte_timeout = byte_timeout
        self.max_body = max_body

    def _trace(self, prefix: str, data: bytes) -> None:
        if self.debug:
            self.trace(format_trace(prefix, data))

    def send(self, cmd: int, payload: bytes = b'') -> None:
        """Encode a command and write it to the transport."""
        data = encode(cmd, payload)
        self._trace('>', data)
        self.transport.write(data)
        logger.debug(f"Sent command {cmd:#04x} with payload length {len(payload)}")

    def write_raw(self, data: bytes) -> None:
        """Write unframed bytes, such as the sync pattern."""
        self.transport.write(data)

    def _read_exact(self, size: int) -> bytes:
        # once a header is in, only inter-byte silence ends the frame
        buf = bytearray()
        while len(buf) < size:
            chunk = self.transport.read(size - len(buf), self.byte_timeout)
            if not chunk:
                break
            buf += chunk
        return bytes(buf)

    def _scan_header(self, deadline: float) -> bool:
        prev = None
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            c = self.transport.read(1, min(self.byte_timeout, remaining))
            if not c:
                prev = None
                continue
            if prev == Frame.HEADER[1] and c[0] == Frame.DIR_CHIP:
                return True
            prev = c[0]

    def recv(self, timeout: float = RESPONSE_TIMEOUT) -> Tuple[int, bytes]:
        """
        Receive one frame from the chip.

        Args:
            timeout: Overall deadline for the frame to start, in seconds

        Returns:
            Tuple of (command byte, payload)

        Raises:
            TimeoutException: If no header shows up before the deadline
            FrameCorruptException: If the frame doesn't validate
        """
        deadline = time.monotonic() + timeout
        while True:
            if not self._scan_header(deadline):
                logger.debug("Receive timeout")
                raise TimeoutException(timeout)

            raw_len = self._read_exact(2)
            if len(raw_len) < 2:
                logger.debug("Partial header followed by silence, rescanning")
                continue

            length, = struct.unpack('>H', raw_len)
            _check_length(length, self.max_body)

            # direction byte and length field are already in
            rest = self._read_exact(length - 3)
            covered = bytes([Frame.DIR_CHIP]) + raw_len + rest
            self._trace('<', Frame.HEADER + covered)
            if len(rest) < length - 3:
                raise FrameCorruptException(f'truncated frame, {len(rest) + 3} of {length} bytes')

            cmd, payload = _unpack(covered)
            logger.debug(f"Received command {cmd:#04x} with payload length {len(payload)}")
            return cmd, payload
