"""
Transport module for STC8 programmer.
Binds the byte channel the codec talks over to a serial port.
"""

import abc
import logging
from typing import Optional

import serial

from .config import SYNC_BAUDRATE, SYNC_PARITY
from .exceptions import SerialConnectionException

logger = logging.getLogger(__name__)


class Transport(abc.ABC):
    """Byte-oriented duplex channel with settable line parameters."""

    @abc.abstractmethod
    def open(self, path: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def configure(self, baudrate: int, bytesize: int = 8, parity: str = SYNC_PARITY,
                  stopbits: int = 1) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def read(self, size: int, timeout: float) -> bytes:
        """Read up to size bytes, returning fewer (or none) if timeout expires."""
        raise NotImplementedError

    @abc.abstractmethod
    def write(self, data: bytes) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def flush_input(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def set_dtr(self, enable: bool) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def set_rts(self, enable: bool) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def close(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


class SerialTransport(Transport):
    """Transport over a local serial port using pyserial."""

    def __init__(self, port_name: Optional[str] = None):
        """
        Initialize the transport.

        Args:
            port_name: Serial port name, opened right away if given
        """
        self.port_name = port_name
        self.serial_port = None
        if port_name:
            self.open(port_name)

    def open(self, path: str) -> None:
        try:
            self.serial_port = serial.Serial(
                port=path,
                baudrate=SYNC_BAUDRATE,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_EVEN,
                stopbits=serial.STOPBITS_ONE,
                timeout=0.1,
            )
        except (serial.SerialException, ValueError) as e:
            logger.error(f"Error opening serial port: {e}")
            raise SerialConnectionException(str(e))
        self.port_name = path
        logger.debug(f"Opened serial port {path}")

    def _port(self) -> serial.Serial:
        if self.serial_port is None or not self.serial_port.is_open:
            raise SerialConnectionException('port is not open')
        return self.serial_port

    def configure(self, baudrate: int, bytesize: int = 8, parity: str = SYNC_PARITY,
                  stopbits: int = 1) -> None:
        port = self._port()
        try:
            port.baudrate = baudrate
            port.bytesize = bytesize
            port.parity = parity
            port.stopbits = stopbits
        except (serial.SerialException, ValueError) as e:
            raise SerialConnectionException(f"cannot set {baudrate} {bytesize}{parity}{stopbits}: {e}")
        logger.debug(f"Port configured to {baudrate} {bytesize}{parity}{stopbits}")

    def read(self, size: int, timeout: float) -> bytes:
        port = self._port()
        try:
            timeout = max(timeout, 0)
            # pyserial reconfigures the port on every timeout assignment
            if port.timeout != timeout:
                port.timeout = timeout
            return port.read(size)
        except serial.SerialException as e:
            raise SerialConnectionException(str(e))

    def write(self, data: bytes) -> None:
        port = self._port()
        try:
            port.write(data)
            port.flush()
        except serial.SerialException as e:
            raise SerialConnectionException(str(e))

    def flush_input(self) -> None:
        self._port().reset_input_buffer()

    def set_dtr(self, enable: bool) -> None:
        self._port().dtr = enable

    def set_rts(self, enable: bool) -> None:
        self._port().rts = enable

    def close(self) -> None:
        """Close the serial port connection."""
        if self.serial_port and self.serial_port.is_open:
            self.serial_port.close()
            logger.debug("Serial port closed")
        self.serial_port = None
