"""
Test module for the Intel HEX loader.
"""

import os
import random
import sys
import tempfile
import unittest
from unittest import mock

# Add parent directory to path to import stc8prog modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from stc8prog.exceptions import (
    HexBadCharException,
    HexBadChecksumException,
    HexNoEofException,
    HexParseException,
    HexTruncatedException,
    ImageTooLargeException
)
from stc8prog.hexfile import HexImage, dump_hex, load_hex_file
from stc8prog.registry import ChipRegistry

SAMPLE_LINE = ':10010000214601360121470136007EFE09D2190140'
EOF_LINE = ':00000001FF'


def parse(*lines):
    return HexImage.from_string('\n'.join(lines + (EOF_LINE,)) + '\n')


class TestRecords(unittest.TestCase):
    """Test cases for single record handling."""

    def test_data_record(self):
        image = parse(SAMPLE_LINE)
        self.assertEqual(len(image), 16)
        self.assertEqual(image.ihex.minaddr(), 0x0100)
        self.assertEqual(image.to_bytes()[0x100:0x110], bytes.fromhex('214601360121470136007EFE09D21901'))

    def test_bad_checksum(self):
        with self.assertRaises(HexBadChecksumException):
            parse(SAMPLE_LINE[:-2] + '41')

    def test_lowercase_and_whitespace(self):
        image = HexImage.from_string('  ' + SAMPLE_LINE.lower() + '\r\n' + EOF_LINE + '\r\n')
        self.assertEqual(image.max_address, 0x010F)

    def test_missing_start_code(self):
        with self.assertRaises(HexBadCharException):
            parse(SAMPLE_LINE[1:])

    def test_non_hex_character(self):
        with self.assertRaises(HexBadCharException):
            parse(SAMPLE_LINE[:9] + 'G' + SAMPLE_LINE[10:])

    def test_truncated(self):
        with self.assertRaises(HexTruncatedException):
            parse(SAMPLE_LINE[:-6])
        with self.assertRaises(HexTruncatedException):
            parse(':0000')
        with self.assertRaises(HexTruncatedException):
            parse(SAMPLE_LINE[:-1])

    def test_trailing_characters(self):
        with self.assertRaises(HexBadCharException):
            parse(SAMPLE_LINE + '00')

    def test_error_line_number(self):
        with self.assertRaises(HexBadChecksumException) as ctx:
            parse(':0100000055AA', '', SAMPLE_LINE[:-2] + '41')
        self.assertEqual(ctx.exception.line, 3)

    def test_overlapping_data(self):
        with self.assertRaises(HexParseException):
            parse(':0100000055AA', ':0100000055AA')


class TestHexImage(unittest.TestCase):
    """Test cases for whole file parsing and image generation."""

    def test_sample_line(self):
        image = HexImage.from_string(SAMPLE_LINE + '\n' + EOF_LINE + '\n')
        self.assertEqual(len(image), 16)
        self.assertEqual(image.max_address, 0x010F)
        data = image.to_bytes()
        self.assertEqual(len(data), 384)
        self.assertEqual(data[:0x100], b'\xFF' * 0x100)
        self.assertEqual(data[0x100:0x110], bytes.fromhex('214601360121470136007EFE09D21901'))
        self.assertEqual(data[0x110:], b'\xFF' * (384 - 0x110))

    def test_bad_checksum_keeps_image(self):
        image = HexImage.from_string(SAMPLE_LINE + '\n' + EOF_LINE)
        before = image.to_bytes()
        with self.assertRaises(HexBadChecksumException) as ctx:
            image = HexImage.from_string(SAMPLE_LINE[:-2] + '41\n' + EOF_LINE)
        self.assertEqual(ctx.exception.line, 1)
        self.assertEqual(image.to_bytes(), before)

    def test_gap_fill(self):
        text = ':0100000055AA\n:01010000AA54\n' + EOF_LINE
        data = HexImage.from_string(text).to_bytes()
        self.assertEqual(data[0], 0x55)
        self.assertEqual(data[1:256], b'\xFF' * 255)
        self.assertEqual(data[256], 0xAA)
        self.assertEqual(len(data), 384)

    def test_missing_eof(self):
        with self.assertRaises(HexNoEofException):
            HexImage.from_string(SAMPLE_LINE + '\n')

    def test_lines_after_eof_ignored(self):
        image = HexImage.from_string(SAMPLE_LINE + '\n' + EOF_LINE + '\ngarbage\n')
        self.assertEqual(len(image), 16)

    def test_blank_lines_and_bytes_input(self):
        text = ('\n' + SAMPLE_LINE + '\n\n' + EOF_LINE + '\n').encode('ascii')
        self.assertEqual(len(HexImage.from_string(text)), 16)

    def test_start_address_record(self):
        text = ':04000005000000CD2A\n:0100000055AA\n' + EOF_LINE
        data = HexImage.from_string(text).to_bytes()
        self.assertEqual(data[0], 0x55)

    def test_unknown_record_types_ignored(self):
        text = ':0100000055AA\n:00000006FA\n:01000100AA54\n' + EOF_LINE
        data = HexImage.from_string(text).to_bytes()
        self.assertEqual(data[:2], b'\x55\xAA')

    def test_segment_address(self):
        text = ':020000021000EC\n:0100000055AA\n' + EOF_LINE
        image = HexImage.from_string(text)
        self.assertEqual(image.max_address, 0x10000)

    def test_linear_address(self):
        text = ':020000040001F9\n:01001000559A\n' + EOF_LINE
        image = HexImage.from_string(text)
        self.assertEqual(image.max_address, 0x10010)

    def test_bad_address_record(self):
        with self.assertRaises(HexParseException):
            HexImage.from_string(':0100000401FA\n' + EOF_LINE)

    def test_empty_image(self):
        self.assertEqual(HexImage.from_string(EOF_LINE).to_bytes(), b'')

    def test_too_large(self):
        text = ':0100000055AA\n:01010000AA54\n' + EOF_LINE
        with self.assertRaises(ImageTooLargeException):
            HexImage.from_string(text).to_bytes(max_size=256)
        self.assertEqual(len(HexImage.from_string(text).to_bytes(max_size=384)), 384)

    def test_high_address_rejected_by_default(self):
        # linear base 0x08000000, far above any STC8 flash
        image = HexImage.from_string(':020000040800F2\n:0100000055AA\n' + EOF_LINE)
        self.assertEqual(image.max_address, 0x08000000)
        with mock.patch.object(image.ihex, 'tobinarray') as tobinarray:
            with self.assertRaises(ImageTooLargeException) as ctx:
                image.to_bytes()
        tobinarray.assert_not_called()
        self.assertEqual(ctx.exception.capacity, ChipRegistry().max_flash_size())


class TestDumpHex(unittest.TestCase):
    """Test cases for writing Intel HEX and reading it back."""

    def test_round_trip(self):
        rng = random.Random(7)
        for size in (1, 127, 128, 129, 1000, 65536):
            data = bytes(rng.randrange(256) for _ in range(size))
            parsed = HexImage.from_string(dump_hex(data)).to_bytes()
            self.assertEqual(len(parsed) % 128, 0)
            self.assertEqual(parsed[:size], data)
            self.assertEqual(parsed[size:], b'\xFF' * (len(parsed) - size))

    def test_record_format(self):
        self.assertEqual(dump_hex(b'\x55'), ':0100000055AA\n' + EOF_LINE + '\n')

    def test_linear_records_above_64k(self):
        text = dump_hex(bytes(0x10010), record_size=16)
        self.assertIn(':020000040001F9', text)
        self.assertEqual(HexImage.from_string(text).max_address, 0x1000F)


class TestLoadHexFile(unittest.TestCase):
    """Test cases for loading images from disk."""

    def _write(self, suffix, data):
        with tempfile.NamedTemporaryFile(mode='wb', suffix=suffix, delete=False) as f:
            f.write(data)
        self.addCleanup(os.unlink, f.name)
        return f.name

    def test_hex_file(self):
        path = self._write('.hex', (SAMPLE_LINE + '\n' + EOF_LINE + '\n').encode('ascii'))
        data = load_hex_file(path)
        self.assertEqual(len(data), 384)

    def test_bin_file(self):
        path = self._write('.bin', b'\x01\x02\x03')
        self.assertEqual(load_hex_file(path), b'\x01\x02\x03' + b'\xFF' * 125)

    def test_max_size(self):
        path = self._write('.bin', bytes(1025))
        with self.assertRaises(ImageTooLargeException):
            load_hex_file(path, max_size=1024)


if __name__ == '__main__':
    unittest.main()
