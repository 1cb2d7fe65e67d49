#!/usr/bin/env python3
"""
Example script demonstrating how to use stc8prog as a library.
"""

import os
import sys
import logging
import threading

# Add the parent directory to the path so we can import the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from stc8prog import ChipRegistry, HexImage, Programmer, SerialTransport, STC8ProgException

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def main():
    """
    Example function demonstrating how to use stc8prog as a library.

    Power cycle the chip once the script says it is waiting.
    """
    # Parameters
    port_name = '/dev/ttyUSB0'  # Change this to your actual port
    firmware_file = 'firmware.hex'  # Change this to your actual firmware file
    baudrate = 115200

    registry = ChipRegistry()
    logger.info(f"Largest supported flash: {registry.max_flash_size()} bytes")

    try:
        image = HexImage.from_file(firmware_file).to_bytes(max_size=registry.max_flash_size())
        logger.info(f"Image size {len(image)} bytes")

        # set() from another thread to abort between steps
        cancel = threading.Event()

        transport = SerialTransport(port_name)
        programmer = Programmer(transport, registry=registry, cancel_event=cancel,
                                progress=lambda done, total: logger.info(f"{done}/{total} bytes"))

        logger.info("Waiting for MCU, please cycle power")
        model = programmer.run(image, baudrate=baudrate, erase=True, terminate=True)
        logger.info(f"Programmed {model.name}, serial number {programmer.serial_number}")

    except (STC8ProgException, OSError) as e:
        logger.error(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
