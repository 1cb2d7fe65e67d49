"""
stc8prog - An in-system programmer for STC8 microcontrollers.
"""

__version__ = '1.0.0'

from .codec import FrameCodec
from .config import ChipModel, ProtocolDef, ProtocolVariant
from .hexfile import HexImage, load_hex_file
from .programmer import Programmer, SessionState
from .registry import ChipRegistry
from .transport import SerialTransport, Transport
from .exceptions import (
    STC8ProgException,
    SerialConnectionException,
    TimeoutException,
    FrameCorruptException,
    NoChipException,
    UnknownChipException,
    UnsupportedProtocolException,
    InvalidBaudrateException,
    BaudNegotiationException,
    EraseTimeoutException,
    EraseRejectedException,
    ProgramRejectedException,
    VerifyMismatchException,
    HexParseException,
    HexBadCharException,
    HexBadChecksumException,
    HexTruncatedException,
    HexNoEofException,
    ImageTooLargeException,
    CancelledException,
    InvalidStateException,
    FileNotFoundException
)
