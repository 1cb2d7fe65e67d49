"""
Test module for the frame codec.
"""

import os
import random
import sys
import unittest

# Add parent directory to path to import stc8prog modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from stc8prog.codec import FrameCodec, checksum, decode, encode, format_trace
from stc8prog.config import Frame
from stc8prog.exceptions import FrameCorruptException, TimeoutException

from fake_target import BufferTransport


def chip_frame(cmd, payload=b''):
    return encode(cmd, payload, direction=Frame.DIR_CHIP)


class TestEncode(unittest.TestCase):
    """Test cases for building host frames."""

    def test_layout(self):
        """Test an erase command frame byte for byte."""
        frame = encode(0x03, b'\x00\x00\x5A\xA5')
        self.assertEqual(frame, bytes([
            0x46, 0xB9, 0x6A, 0x00, 0x0B, 0x03, 0x00, 0x00, 0x5A, 0xA5, 0x01, 0x77, 0x16]))

    def test_length_and_checksum_fields(self):
        payload = bytes(range(40))
        frame = encode(0x22, payload)
        length = (frame[3] << 8) | frame[4]
        self.assertEqual(length, len(frame) - 2)
        self.assertEqual(length, len(payload) + 1 + Frame.OVERHEAD)
        self.assertEqual((frame[-3] << 8) | frame[-2], checksum(frame[2:-3]))
        self.assertEqual(frame[-1], Frame.TRAILER)

    def test_checksum_wraps(self):
        self.assertEqual(checksum(b'\xFF' * 258), (0xFF * 258) & 0xFFFF)
        self.assertEqual(checksum(b'\xFF' * 0x101 + b'\x01'), 0)
        self.assertEqual(checksum(b''), 0)

    def test_oversized_payload(self):
        with self.assertRaises(ValueError):
            encode(0x02, bytes(0x10000))


class TestDecode(unittest.TestCase):
    """Test cases for validating complete frames."""

    def test_round_trip(self):
        rng = random.Random(1)
        for size in (0, 1, 128, 253, 1024, 4096):
            payload = bytes(rng.randrange(256) for _ in range(size))
            frame = encode(0x22, payload)
            self.assertEqual(decode(frame, direction=Frame.DIR_HOST), (0x22, payload))

    def test_wrong_direction(self):
        with self.assertRaises(FrameCorruptException):
            decode(encode(0x05, b''), direction=Frame.DIR_CHIP)

    def test_length_mismatch(self):
        frame = chip_frame(0x05, b'\x01\x02')
        with self.assertRaises(FrameCorruptException):
            decode(frame[:-1] + b'\x00\x16')

    def test_body_limit(self):
        frame = chip_frame(0x50, bytes(300))
        self.assertEqual(decode(frame)[1], bytes(300))
        with self.assertRaises(FrameCorruptException):
            decode(frame, max_body=Frame.MAX_BODY)


class TestFrameCodec(unittest.TestCase):
    """Test cases for sending and receiving over a transport."""

    def test_send_writes_frame(self):
        transport = BufferTransport()
        codec = FrameCodec(transport)
        codec.send(0x05, b'\x00\x00\x5A\xA5')
        self.assertEqual(bytes(transport.written), encode(0x05, b'\x00\x00\x5A\xA5'))

    def test_recv(self):
        codec = FrameCodec(BufferTransport(chip_frame(0x02, b'\x54\x12\x34')))
        self.assertEqual(codec.recv(0.1), (0x02, b'\x54\x12\x34'))

    def test_recv_skips_noise(self):
        noise = b'\x00\xFE\x46\xB9\x6A\x7F\xB9'
        codec = FrameCodec(BufferTransport(noise, chip_frame(0x01, b'\xAA')))
        self.assertEqual(codec.recv(0.1), (0x01, b'\xAA'))

    def test_recv_tolerates_lost_first_header_byte(self):
        codec = FrameCodec(BufferTransport(chip_frame(0x05)[1:]))
        self.assertEqual(codec.recv(0.1), (0x05, b''))

    def test_recv_rescans_after_partial_header(self):
        """A header cut off by silence is dropped and the next frame is found."""
        codec = FrameCodec(BufferTransport(b'\x46\xB9\x68\x00', None, None, chip_frame(0x03)))
        self.assertEqual(codec.recv(0.1), (0x03, b''))

    def test_recv_timeout(self):
        codec = FrameCodec(BufferTransport(b'\x00\x01\x02'))
        with self.assertRaises(TimeoutException):
            codec.recv(0.02)

    def test_recv_truncated_body(self):
        codec = FrameCodec(BufferTransport(chip_frame(0x50, bytes(20))[:-4]))
        with self.assertRaises(FrameCorruptException):
            codec.recv(0.1)

    def test_recv_rejects_oversized_length(self):
        frame = bytearray(chip_frame(0x50, bytes(20)))
        frame[3] = 0x10
        with self.assertRaises(FrameCorruptException):
            FrameCodec(BufferTransport(bytes(frame))).recv(0.1)

    def test_single_bit_flips_are_detected(self):
        """Every single-bit error outside the header and trailer literals is caught."""
        payload = bytes([0x54, 0x20, 0x31, 0x42, 0x53, 0x64, 0x75, 0x01])
        frame = chip_frame(0x02, payload)
        for index in range(3, len(frame) - 1):
            for bit in range(8):
                corrupted = bytearray(frame)
                corrupted[index] ^= 1 << bit
                codec = FrameCodec(BufferTransport(bytes(corrupted)))
                with self.assertRaises(FrameCorruptException, msg=f'byte {index} bit {bit}'):
                    codec.recv(0.05)

    def test_trace(self):
        lines = []
        transport = BufferTransport(chip_frame(0x05))
        codec = FrameCodec(transport, debug=True, trace=lines.append)
        codec.send(0x05, b'\x00\x00\x5A\xA5')
        codec.recv(0.1)
        self.assertEqual(lines, [
            '> 46 B9 6A 00 0B 05 00 00 5A A5 01 79 16',
            '< 46 B9 68 00 07 05 00 74 16',
        ])

    def test_no_trace_without_debug(self):
        lines = []
        codec = FrameCodec(BufferTransport(), trace=lines.append)
        codec.send(0xFF)
        self.assertEqual(lines, [])

    def test_format_trace(self):
        self.assertEqual(format_trace('<', b'\x0a\xff'), '< 0A FF')


if __name__ == '__main__':
    unittest.main()
