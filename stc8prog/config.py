"""
Configuration module for STC8 programmer.
Contains chip and protocol definitions and constants used by the programmer.
"""

import enum
import sys
from typing import NamedTuple, Tuple


class ProtocolVariant(enum.Enum):
    """Boot loader protocol flavours."""
    STC8H = 'stc8h'
    STC8G = 'stc8g'
    STC8A = 'stc8a'
    STC15 = 'stc15'


class ChipModel(NamedTuple):
    id: int
    name: str
    protocol: ProtocolVariant
    flash_size_kb: int


class ProtocolDef(NamedTuple):
    variant: ProtocolVariant
    name: str
    cmd_detect: int
    cmd_baud_switch: int
    cmd_baud_verify: int
    cmd_erase: int
    cmd_write_begin: int
    cmd_write_cont: int
    cmd_terminate: int
    # Chip answers every write chunk with this command byte plus ack_write_magic
    ack_write: int
    ack_write_magic: int
    # Factory calibrated clock the baud reload value is computed from
    fuser: int
    baud_prefix: Tuple[int, ...]
    baud_trim: Tuple[int, ...]
    cmd_magic: Tuple[int, ...]
    chunk_size: int = 128


# Framing constants
class Frame:
    """Constants for the STC ISP frame layout."""
    HEADER = b'\x46\xB9'
    DIR_HOST = 0x6A
    DIR_CHIP = 0x68
    TRAILER = 0x16

    # direction byte + length field + checksum + trailer
    OVERHEAD = 6
    # A frame body is the command byte plus its payload
    MAX_BODY = 253


SYNC_BYTE = b'\x7F'
# Command byte of the status frame the chip answers the sync bytes with
STATUS_CMD = 0x50
SYNC_BAUDRATE = 2400
SYNC_PARITY = 'E'

DEFAULT_BAUDRATE = 115200
SUPPORTED_BAUDRATES = (
    4800, 9600, 19200, 38400, 57600, 115200, 230400, 460800, 500000, 576000,
    921600, 1000000, 1152000, 1500000, 2000000, 2500000, 3000000, 3500000,
    4000000,
)

if sys.platform == 'win32':
    DEFAULT_PORT = 'COM3'
elif sys.platform == 'darwin':
    DEFAULT_PORT = '/dev/tty.usbserial'
else:
    DEFAULT_PORT = '/dev/ttyUSB0'

# Timeouts in seconds
BYTE_TIMEOUT = 0.2
SYNC_TIMEOUT = 0.03
SYNC_CYCLES = 500
RESPONSE_TIMEOUT = 1.0
ERASE_TIMEOUT = 10.0
ERASE_TIMEOUT_RANGE = (5.0, 15.0)

# Offsets inside the detect status body (index 0 is the command echo)
STATUS_CHIP_ID = 20
STATUS_VERSION = 17


_STC8_COMMANDS = dict(
    cmd_detect=SYNC_BYTE[0],
    cmd_baud_switch=0x01,
    cmd_baud_verify=0x05,
    cmd_erase=0x03,
    cmd_write_begin=0x22,
    cmd_write_cont=0x02,
    cmd_terminate=0xFF,
    ack_write=0x02,
    ack_write_magic=0x54,
    cmd_magic=(0x5A, 0xA5),
)

PROTOCOL_DEFS = (
    ProtocolDef(
        variant=ProtocolVariant.STC8H, name='STC8H',
        fuser=24000000, baud_prefix=(0x00, 0x00), baud_trim=(0x01, 0x7B, 0x81),
        **_STC8_COMMANDS),
    ProtocolDef(
        variant=ProtocolVariant.STC8G, name='STC8G',
        fuser=24000000, baud_prefix=(0x00, 0x00), baud_trim=(0x01, 0x7B, 0x81),
        **_STC8_COMMANDS),
    ProtocolDef(
        variant=ProtocolVariant.STC8A, name='STC8A/8F/8C',
        fuser=24000000, baud_prefix=(0x00, 0x00), baud_trim=(0x01, 0x7B, 0x81),
        **_STC8_COMMANDS),
    ProtocolDef(
        variant=ProtocolVariant.STC15, name='STC15',
        fuser=22118400, baud_prefix=(0x6D, 0x40), baud_trim=(0x40, 0x9F, 0x81),
        **_STC8_COMMANDS),
)

_H = ProtocolVariant.STC8H
_G = ProtocolVariant.STC8G
_A = ProtocolVariant.STC8A
_W = ProtocolVariant.STC15

CHIP_DEFS = (
    # STC8H1K
    ChipModel(0xF731, 'STC8H1K02', _H, 2),
    ChipModel(0xF732, 'STC8H1K04', _H, 4),
    ChipModel(0xF733, 'STC8H1K06', _H, 6),
    ChipModel(0xF734, 'STC8H1K08', _H, 8),
    ChipModel(0xF735, 'STC8H1K10', _H, 10),
    ChipModel(0xF736, 'STC8H1K12', _H, 12),
    ChipModel(0xF737, 'STC8H1K17', _H, 17),
    ChipModel(0xF147, 'STC8H1K28', _H, 28),
    # STC8H3K
    ChipModel(0xF741, 'STC8H3K08S4', _H, 8),
    ChipModel(0xF742, 'STC8H3K16S4', _H, 16),
    ChipModel(0xF743, 'STC8H3K60S4', _H, 60),
    ChipModel(0xF744, 'STC8H3K64S4', _H, 64),
    ChipModel(0xF749, 'STC8H3K16S2', _H, 16),
    ChipModel(0xF74A, 'STC8H3K32S2', _H, 32),
    ChipModel(0xF74B, 'STC8H3K60S2', _H, 60),
    ChipModel(0xF74C, 'STC8H3K64S2', _H, 64),
    # STC8H8K
    ChipModel(0xF781, 'STC8H8K16U', _H, 16),
    ChipModel(0xF782, 'STC8H8K32U', _H, 32),
    ChipModel(0xF783, 'STC8H8K60U', _H, 60),
    ChipModel(0xF784, 'STC8H8K64U', _H, 64),
    # STC8G1K
    ChipModel(0xF751, 'STC8G1K02-20/16PIN', _G, 2),
    ChipModel(0xF752, 'STC8G1K04-20/16PIN', _G, 4),
    ChipModel(0xF753, 'STC8G1K06-20/16PIN', _G, 6),
    ChipModel(0xF754, 'STC8G1K08-20/16PIN', _G, 8),
    ChipModel(0xF755, 'STC8G1K10-20/16PIN', _G, 10),
    ChipModel(0xF756, 'STC8G1K12-20/16PIN', _G, 12),
    ChipModel(0xF757, 'STC8G1K17-20/16PIN', _G, 17),
    ChipModel(0xF771, 'STC8G1K02T', _G, 2),
    ChipModel(0xF774, 'STC8G1K08T', _G, 8),
    ChipModel(0xF777, 'STC8G1K17T', _G, 17),
    ChipModel(0xF794, 'STC8G1K08A-8PIN', _G, 8),
    ChipModel(0xF797, 'STC8G1K17A-8PIN', _G, 17),
    ChipModel(0xF7A4, 'STC8G1K08-8PIN', _G, 8),
    ChipModel(0xF7A7, 'STC8G1K17-8PIN', _G, 17),
    # STC8G2K
    ChipModel(0xF761, 'STC8G2K16S4', _G, 16),
    ChipModel(0xF762, 'STC8G2K32S4', _G, 32),
    ChipModel(0xF763, 'STC8G2K60S4', _G, 60),
    ChipModel(0xF764, 'STC8G2K64S4', _G, 64),
    ChipModel(0xF769, 'STC8G2K16S2', _G, 16),
    ChipModel(0xF76A, 'STC8G2K32S2', _G, 32),
    ChipModel(0xF76B, 'STC8G2K60S2', _G, 60),
    ChipModel(0xF76C, 'STC8G2K64S2', _G, 64),
    # STC8A8K / STC8A4K
    ChipModel(0xF621, 'STC8A8K08S4A12', _A, 8),
    ChipModel(0xF622, 'STC8A8K16S4A12', _A, 16),
    ChipModel(0xF624, 'STC8A8K32S4A12', _A, 32),
    ChipModel(0xF628, 'STC8A8K64S4A12', _A, 64),
    ChipModel(0xF629, 'STC8A8K60S4A12', _A, 60),
    ChipModel(0xF651, 'STC8A4K08S2A12', _A, 8),
    ChipModel(0xF652, 'STC8A4K16S2A12', _A, 16),
    ChipModel(0xF654, 'STC8A4K32S2A12', _A, 32),
    ChipModel(0xF659, 'STC8A4K60S2A12', _A, 60),
    # STC8F
    ChipModel(0xF631, 'STC8F2K08S4', _A, 8),
    ChipModel(0xF632, 'STC8F2K16S4', _A, 16),
    ChipModel(0xF634, 'STC8F2K32S4', _A, 32),
    ChipModel(0xF639, 'STC8F2K60S4', _A, 60),
    ChipModel(0xF641, 'STC8F2K08S2', _A, 8),
    ChipModel(0xF649, 'STC8F2K60S2', _A, 60),
    ChipModel(0xF664, 'STC8F1K08S2', _A, 8),
    ChipModel(0xF667, 'STC8F1K17S2', _A, 17),
    ChipModel(0xF674, 'STC8F1K08', _A, 8),
    ChipModel(0xF677, 'STC8F1K17', _A, 17),
    # STC8C
    ChipModel(0xF701, 'STC8C1K02', _A, 2),
    ChipModel(0xF704, 'STC8C1K08', _A, 8),
    ChipModel(0xF706, 'STC8C1K12', _A, 12),
    # STC15W4K
    ChipModel(0xF569, 'STC15W4K58S4', _W, 58),
    ChipModel(0xF56A, 'STC15W4K61S4', _W, 61),
)
