"""
Intel HEX module for STC8 programmer.
Turns Intel HEX text into the contiguous image written to flash.
"""

import io
import logging
import os
import string
from typing import List, Optional, Union

from intelhex import (
    HexReaderError,
    HexRecordError,
    IntelHex,
    RecordChecksumError,
    RecordLengthError,
    RecordTypeError
)

from .exceptions import (
    HexBadCharException,
    HexBadChecksumException,
    HexNoEofException,
    HexParseException,
    HexTruncatedException,
    ImageTooLargeException
)
from .registry import ChipRegistry

logger = logging.getLogger(__name__)

RECORD_EOF = 0x01

PAD_BYTE = 0xFF
CHUNK_SIZE = 128

_HEX_DIGITS = frozenset(string.hexdigits)


def _record_type(line: str) -> Optional[int]:
    field = line[7:9]
    if line.startswith(':') and len(field) == 2 and all(c in _HEX_DIGITS for c in field):
        return int(field, 16)
    return None


def _malformed(line: str, lineno: int) -> HexParseException:
    # intelhex reports these as a bare HexRecordError
    if not line.startswith(':'):
        return HexBadCharException(lineno, 'missing start code ":"')
    for c in line[1:]:
        if c not in _HEX_DIGITS:
            return HexBadCharException(lineno, f'invalid character {c!r}')
    return HexTruncatedException(lineno, 'record too short')


def _convert(error: HexReaderError, lines: List[str]) -> HexParseException:
    lineno = getattr(error, 'line', None) or 0
    line = lines[lineno - 1] if 0 < lineno <= len(lines) else ''

    if isinstance(error, RecordChecksumError):
        return HexBadChecksumException(lineno, 'record checksum does not validate')
    if isinstance(error, RecordLengthError):
        count = int(line[1:3], 16)
        found = len(line[1:]) // 2 - 5
        if found > count:
            return HexBadCharException(lineno, 'trailing characters after checksum')
        return HexTruncatedException(lineno, f'record declares {count} data bytes, found {found}')
    if type(error) is HexRecordError:
        return _malformed(line, lineno)
    return HexParseException(lineno, str(error))


class HexImage:
    """Memory image built from Intel HEX records."""

    def __init__(self, ihex: Optional[IntelHex] = None):
        self.ihex = ihex if ihex is not None else IntelHex()
        self.ihex.padding = PAD_BYTE

    @classmethod
    def from_string(cls, text: Union[str, bytes]) -> 'HexImage':
        """
        Parse Intel HEX text.

        Lines after the EOF record are ignored, and so are records of a type
        intelhex doesn't know. Nothing is kept if any record fails to parse.

        Raises:
            HexParseException: On any malformed record or a missing EOF record
        """
        if isinstance(text, (bytes, bytearray)):
            text = text.decode('ascii', errors='replace')

        # blank lines stay in so intelhex line numbers match the file
        lines = [line.strip() for line in text.splitlines()]
        eof = next((n for n, line in enumerate(lines, 1) if _record_type(line) == RECORD_EOF), None)

        while True:
            ihex = IntelHex()
            try:
                ihex.loadhex(io.StringIO('\n'.join(lines)))
            except RecordTypeError as e:
                logger.debug(f"Line {e.line}: ignoring record type {_record_type(lines[e.line - 1]):02X}")
                lines[e.line - 1] = ''
                continue
            except HexReaderError as e:
                raise _convert(e, lines)
            break

        if eof is None:
            raise HexNoEofException(len(lines), 'missing EOF record')
        return cls(ihex)

    @classmethod
    def from_file(cls, path: str) -> 'HexImage':
        with open(path, 'rb') as f:
            return cls.from_string(f.read())

    @property
    def max_address(self) -> Optional[int]:
        return self.ihex.maxaddr() if len(self.ihex) else None

    def __len__(self):
        return len(self.ihex)

    def to_bytes(self, chunk_size: int = CHUNK_SIZE, max_size: Optional[int] = None) -> bytes:
        """
        Emit the contiguous image starting at address 0.

        Gaps are filled with 0xFF and the length is rounded up to chunk_size.

        Args:
            chunk_size: Program chunk size the length is rounded to
            max_size: Flash capacity in bytes, defaults to the largest known chip

        Raises:
            ImageTooLargeException: If the image doesn't fit into max_size
        """
        if self.max_address is None:
            return b''

        if max_size is None:
            max_size = ChipRegistry().max_flash_size()
        size = self.max_address + 1
        size += -size % chunk_size
        if size > max_size:
            raise ImageTooLargeException(size, max_size)

        return self.ihex.tobinarray(start=0, size=size).tobytes()


def dump_hex(data: bytes, record_size: int = 16) -> str:
    """Render data located at address 0 as Intel HEX text."""
    ihex = IntelHex()
    ihex.puts(0, bytes(data))
    out = io.StringIO()
    ihex.write_hex_file(out, write_start_addr=False, byte_count=record_size)
    return out.getvalue()


def load_hex_file(path: str, chunk_size: int = CHUNK_SIZE, max_size: Optional[int] = None) -> bytes:
    """
    Load a firmware image from disk.

    Files ending in .bin are taken as raw images, anything else as Intel HEX.
    """
    if os.path.splitext(path)[1].lower() == '.bin':
        ihex = IntelHex()
        ihex.loadbin(path)
        image = HexImage(ihex)
    else:
        image = HexImage.from_file(path)

    data = image.to_bytes(chunk_size, max_size)
    logger.debug(f"Loaded {len(image)} bytes from {path}, image size {len(data)}")
    return data
