"""
Exception classes for STC8 programmer.
"""


class STC8ProgException(Exception):
    """Base exception class for STC8 programmer."""
    kind = 'ERROR'

    def __init__(self, message):
        super().__init__(message)


class SerialConnectionException(STC8ProgException):
    """Exception raised when there's an issue with the serial connection."""
    kind = 'IO'

    def __init__(self, message):
        super().__init__(f'Serial connection error: {message}')


class TimeoutException(STC8ProgException):
    """Exception raised when no frame arrives before the deadline."""
    kind = 'TIMEOUT'

    def __init__(self, timeout):
        self.timeout = timeout
        super().__init__(f'No response within {timeout:.2f}s')


class FrameCorruptException(STC8ProgException):
    """Exception raised when a received frame fails validation."""
    kind = 'FRAME_CORRUPT'

    def __init__(self, reason):
        self.reason = reason
        super().__init__(f'Corrupt frame: {reason}')


class NoChipException(STC8ProgException):
    """Exception raised when the chip never answers the sync sequence."""
    kind = 'NO_CHIP'

    def __init__(self):
        super().__init__('Failed to detect chip')


class UnknownChipException(STC8ProgException):
    """Exception raised when the chip id is not in the registry."""
    kind = 'UNKNOWN_CHIP'

    def __init__(self, chip_id):
        self.chip_id = chip_id
        super().__init__(f'Unknown chip code: {chip_id:04x}')


class UnsupportedProtocolException(STC8ProgException):
    """Exception raised when a chip model refers to a protocol we can't speak."""
    kind = 'UNSUPPORTED_PROTOCOL'

    def __init__(self, variant):
        self.variant = variant
        super().__init__(f'Unsupported protocol: {variant}')


class InvalidBaudrateException(STC8ProgException):
    """Exception raised when the requested baudrate is not supported."""
    kind = 'BAUD'

    def __init__(self, baudrate):
        self.baudrate = baudrate
        super().__init__(f'Baudrate {baudrate} is not supported')


class BaudNegotiationException(STC8ProgException):
    """Exception raised when the chip refuses or fails to confirm a baudrate switch."""
    kind = 'BAUD'

    def __init__(self, baudrate, reason):
        self.baudrate = baudrate
        super().__init__(f'Failed to switch to {baudrate} baud: {reason}')


class EraseTimeoutException(STC8ProgException):
    """Exception raised when the chip doesn't finish erasing in time."""
    kind = 'ERASE_TIMEOUT'

    def __init__(self, timeout):
        super().__init__(f'Erase not acknowledged within {timeout:.1f}s')


class EraseRejectedException(STC8ProgException):
    """Exception raised when the chip answers the erase command with something else."""
    kind = 'ERASE_REJECTED'

    def __init__(self, cmd):
        super().__init__(f'Erase rejected, chip answered {cmd:#04x}')


class ProgramRejectedException(STC8ProgException):
    """Exception raised when a program chunk is not acknowledged."""
    kind = 'PROGRAM_REJECTED'

    def __init__(self, offset, reason):
        self.offset = offset
        super().__init__(f'Write rejected at offset {offset:#06x}: {reason}')


class VerifyMismatchException(STC8ProgException):
    """Exception raised when the chip's checksum doesn't match the image."""
    kind = 'VERIFY_MISMATCH'

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        if actual is None:
            message = f'Chip reported no checksum, expected {expected:#06x}'
        else:
            message = f'Checksum mismatch: expected {expected:#06x}, chip reported {actual:#06x}'
        super().__init__(message)


class HexParseException(STC8ProgException):
    """Base exception for Intel HEX parsing errors."""
    kind = 'HEX_PARSE'

    def __init__(self, line, reason):
        self.line = line
        super().__init__(f'Line {line}: {reason}')


class HexBadCharException(HexParseException):
    """Exception raised on a non-hex character or a missing start code."""


class HexBadChecksumException(HexParseException):
    """Exception raised when a record checksum doesn't validate."""


class HexTruncatedException(HexParseException):
    """Exception raised when a record is shorter than its byte count says."""


class HexNoEofException(HexParseException):
    """Exception raised when the file ends without an EOF record."""


class ImageTooLargeException(STC8ProgException):
    """Exception raised when the firmware doesn't fit into flash."""
    kind = 'IMAGE_TOO_LARGE'

    def __init__(self, size, capacity):
        self.size = size
        self.capacity = capacity
        super().__init__(f'Image of {size} bytes exceeds flash size of {capacity} bytes')


class CancelledException(STC8ProgException):
    """Exception raised when the session was cancelled by the caller."""
    kind = 'CANCELLED'

    def __init__(self):
        super().__init__('Session cancelled, cycle power to recover the chip')


class InvalidStateException(STC8ProgException):
    """Exception raised when an operation is called out of order."""
    kind = 'INVALID_STATE'

    def __init__(self, operation, state):
        super().__init__(f'Cannot {operation} in state {state}')


class FileNotFoundException(STC8ProgException):
    """Exception raised when a firmware file is not found."""
    kind = 'IO'

    def __init__(self, value):
        message = f'Firmware file not found at {value}'
        super().__init__(message)
