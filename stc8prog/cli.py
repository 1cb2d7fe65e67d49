"""
Command-line interface module for STC8 programmer.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from tqdm import tqdm

from . import __version__
from .config import DEFAULT_BAUDRATE, DEFAULT_PORT, SUPPORTED_BAUDRATES
from .exceptions import STC8ProgException, FileNotFoundException
from .hexfile import load_hex_file
from .programmer import Programmer
from .registry import ChipRegistry
from .transport import SerialTransport

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """
    Set up logging configuration.

    Frame traces go out bare, one frame per line, so they can be compared
    against captured sessions.

    Args:
        debug: Whether to enable debug logging and frame traces
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )

    trace_logger = logging.getLogger('stc8prog.trace')
    if not trace_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(message)s'))
        trace_logger.addHandler(handler)
    trace_logger.propagate = False


class ArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with status 1 on bad usage."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    rates = ', '.join(str(rate) for rate in SUPPORTED_BAUDRATES)
    parser = ArgumentParser(
        prog='stc8prog',
        description="STC8 ISP programmer",
        epilog=f"Baudrate options: {rates}")
    parser.add_argument("-p", "--port", default=DEFAULT_PORT,
                        help=f"Serial port name (default: {DEFAULT_PORT})")
    parser.add_argument("-s", "--speed", type=int, default=DEFAULT_BAUDRATE,
                        help=f"Download baudrate (default: {DEFAULT_BAUDRATE})")
    parser.add_argument("-f", "--flash", metavar="FILE", help="Flash chip with data from hex file")
    parser.add_argument("-e", "--erase", help="Erase the entire chip", action="store_true")
    parser.add_argument("-d", "--debug", help="Enable debug output", action="store_true")
    parser.add_argument("-t", "--terminate", help="Run the application when done", action="store_true")
    parser.add_argument("-v", "--version", action="version",
                        version=f"stc8prog {__version__}\nLicensed under the Apache License, Version 2.0")

    return parser


def parse_args(args: List[str] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments (optional)

    Returns:
        Parsed arguments
    """
    return build_parser().parse_args(args)


class ProgressBar:
    """Feeds programmer progress callbacks into a tqdm bar."""

    def __init__(self):
        self.pbar = None
        self.last = 0

    def update(self, written: int, total: int) -> None:
        if self.pbar is None:
            self.pbar = tqdm(total=total, unit='B', unit_scale=True, desc='Writing')
        self.pbar.update(written - self.last)
        self.last = written

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None


def load_image(path: str) -> bytes:
    """
    Load the firmware image named on the command line.

    Raises:
        FileNotFoundException: If the file doesn't exist
    """
    if not os.path.exists(path):
        raise FileNotFoundException(path)

    logger.info(f"Loading hex file: {path}")
    image = load_hex_file(path, max_size=ChipRegistry().max_flash_size())
    logger.info(f"Image size {len(image)} bytes")
    return image


def run_command(args: argparse.Namespace) -> bool:
    """
    Run a programming session.

    Args:
        args: Parsed arguments

    Returns:
        True if successful, False otherwise
    """
    progress = ProgressBar()
    try:
        if args.speed not in SUPPORTED_BAUDRATES:
            logger.error(f"Baudrate {args.speed} is not supported")
            return False

        image = load_image(args.flash) if args.flash else None

        logger.info(f"Opening port {args.port}")
        transport = SerialTransport(args.port)
        programmer = Programmer(transport, debug=args.debug, progress=progress.update)

        logger.info("Waiting for MCU, please cycle power")
        programmer.run(image, baudrate=args.speed, erase=args.erase, terminate=args.terminate)

        logger.info("Operation completed successfully")
        return True

    except STC8ProgException as e:
        logger.error(str(e))
        return False
    finally:
        progress.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        build_parser().print_help()
        return 1

    try:
        args = parse_args(argv)
    except SystemExit as e:
        # --version and usage errors
        return e.code or 0
    setup_logging(args.debug)

    try:
        if run_command(args):
            return 0
        else:
            return 1
    except Exception as e:
        logger.error(f"Unhandled exception: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
