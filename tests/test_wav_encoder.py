"""
tests/test_wav_encoder.py
==========================
WavEncoder Tests — header layout, quantization, round trip

All tests are OFFLINE — bytes only, no filesystem.
"""

import io
import os
import struct
import sys
import unittest
import wave
from unittest import mock

import numpy as np

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.audio.buffer import AudioBuffer, InvalidInputError
from src.audio.wav_encoder import (
    HEADER_SIZE,
    decode,
    encode,
    encode_buffer,
    float_to_pcm16,
    read_pcm16,
)


def _header(data: bytes) -> tuple:
    return struct.unpack("<4sI4s4sIHHIIHH4sI", data[:HEADER_SIZE])


# ===================================================================
# Header
# ===================================================================


class TestWavHeader(unittest.TestCase):

    def test_empty_stream_is_header_only(self):
        data = encode([], 16000)
        self.assertEqual(len(data), 44)
        (riff, chunk_size, wave_tag, fmt_tag, fmt_size, audio_format,
         channels, rate, byte_rate, block_align, bits, data_tag, data_size) = _header(data)
        self.assertEqual(riff, b"RIFF")
        self.assertEqual(chunk_size, 36)
        self.assertEqual(wave_tag, b"WAVE")
        self.assertEqual(fmt_tag, b"fmt ")
        self.assertEqual(fmt_size, 16)
        self.assertEqual(audio_format, 1)
        self.assertEqual(channels, 1)
        self.assertEqual(rate, 16000)
        self.assertEqual(byte_rate, 32000)
        self.assertEqual(block_align, 2)
        self.assertEqual(bits, 16)
        self.assertEqual(data_tag, b"data")
        self.assertEqual(data_size, 0)

    def test_sizes_scale_with_sample_count(self):
        n = 1000
        data = encode(np.zeros(n), 44100)
        self.assertEqual(len(data), 44 + 2 * n)
        fields = _header(data)
        self.assertEqual(fields[1], 36 + 2 * n)
        self.assertEqual(fields[7], 44100)
        self.assertEqual(fields[8], 88200)
        self.assertEqual(fields[12], 2 * n)

    def test_header_bytes_exact(self):
        data = encode([0.0], 8000)
        expected = (
            b"RIFF" + struct.pack("<I", 38) + b"WAVE"
            + b"fmt " + struct.pack("<IHHIIHH", 16, 1, 1, 8000, 16000, 2, 16)
            + b"data" + struct.pack("<I", 2)
            + b"\x00\x00"
        )
        self.assertEqual(data, expected)


# ===================================================================
# Quantization
# ===================================================================


class TestQuantization(unittest.TestCase):

    def test_full_scale_boundaries(self):
        data = encode([1.0, -1.0, 0.0], 22050)
        pcm = np.frombuffer(data[HEADER_SIZE:], dtype="<i2")
        self.assertEqual(pcm.tolist(), [32767, -32768, 0])

    def test_asymmetric_scaling_truncates_toward_zero(self):
        # 0.5 * 32767 = 16383.5, -0.5 * 32768 = -16384
        self.assertEqual(float_to_pcm16([0.5, -0.5]).tolist(), [16383, -16384])
        self.assertEqual(float_to_pcm16([-1e-6, 1e-6]).tolist(), [0, 0])
        self.assertEqual(float_to_pcm16([-0.99999]).tolist(), [-32767])

    def test_out_of_range_values_clamped(self):
        self.assertEqual(float_to_pcm16([2.0, -3.5, 1.0001]).tolist(), [32767, -32768, 32767])

    def test_non_finite_values(self):
        pcm = float_to_pcm16([float("nan"), float("inf"), float("-inf")])
        self.assertEqual(pcm.tolist(), [0, 32767, -32768])

    def test_little_endian_on_the_wire(self):
        data = encode([1.0], 16000)
        self.assertEqual(data[HEADER_SIZE:], b"\xff\x7f")

    def test_little_endian_on_big_endian_host(self):
        with mock.patch.object(sys, "byteorder", "big"):
            data = encode([1.0, -1.0], 16000)
        self.assertEqual(data[HEADER_SIZE:], b"\xff\x7f\x00\x80")

    def test_big_endian_host_reads_its_own_output(self):
        with mock.patch.object(sys, "byteorder", "big"):
            data = encode([0.5, -0.25], 22050)
            pcm = read_pcm16(data)
            buf = decode(data)
        self.assertEqual(pcm.tolist(), [16383, -8192])
        self.assertEqual(buf.sample_rate, 22050)
        np.testing.assert_allclose(buf.mono(), [16383 / 32768, -0.25])


# ===================================================================
# Errors and determinism
# ===================================================================


class TestEncoderContract(unittest.TestCase):

    def test_invalid_sample_rates(self):
        for rate in (0, -16000, 16000.0):
            with self.subTest(rate=rate):
                with self.assertRaises(InvalidInputError):
                    encode([0.0], rate)

    def test_deterministic(self):
        rng = np.random.default_rng(7)
        samples = rng.uniform(-1.2, 1.2, size=4096)
        self.assertEqual(encode(samples, 16000), encode(list(samples), 16000))

    def test_input_not_modified(self):
        samples = np.array([2.0, -2.0, np.nan])
        encode(samples, 16000)
        self.assertEqual(samples[0], 2.0)
        self.assertTrue(np.isnan(samples[2]))

    def test_encode_buffer_uses_buffer_rate(self):
        buffer = AudioBuffer.from_channels([0.25] * 10, 16000)
        data = encode_buffer(buffer)
        self.assertEqual(_header(data)[7], 16000)
        self.assertEqual(len(data), 44 + 20)

    def test_readable_by_wave_module(self):
        data = encode(np.linspace(-1, 1, 321), 16000)
        with wave.open(io.BytesIO(data), "rb") as wf:
            self.assertEqual(wf.getnchannels(), 1)
            self.assertEqual(wf.getsampwidth(), 2)
            self.assertEqual(wf.getframerate(), 16000)
            self.assertEqual(wf.getnframes(), 321)


# ===================================================================
# Round trip
# ===================================================================


class TestRoundTrip(unittest.TestCase):

    def test_pcm_matches_quantized_input(self):
        rng = np.random.default_rng(11)
        samples = rng.uniform(-1.5, 1.5, size=2000)
        expected = float_to_pcm16(samples).astype(np.int32)
        decoded = read_pcm16(encode(samples, 16000)).astype(np.int32)
        self.assertTrue(np.all(np.abs(decoded - expected) <= 1))

    def test_decode_to_float_within_one_lsb(self):
        samples = np.sin(np.linspace(0, 20 * np.pi, 1600)) * 0.9
        buffer = decode(encode(samples, 16000))
        self.assertEqual(buffer.sample_rate, 16000)
        self.assertEqual(buffer.num_samples, 1600)
        clamped = np.clip(samples, -1.0, 1.0)
        self.assertLessEqual(np.max(np.abs(buffer.mono() - clamped)), 2.0 / 32768)

    def test_decode_stereo_pcm16(self):
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wf:
            wf.setnchannels(2)
            wf.setsampwidth(2)
            wf.setframerate(8000)
            wf.writeframes(np.array([16384, -16384, 8192, -8192], dtype="<i2").tobytes())

        buffer = decode(buf.getvalue())
        self.assertEqual(buffer.num_channels, 2)
        np.testing.assert_allclose(buffer.channels[0], [0.5, 0.25])
        np.testing.assert_allclose(buffer.channels[1], [-0.5, -0.25])

    def test_decode_rejects_garbage(self):
        for payload in (b"", b"RIF", b"not a wav file at all"):
            with self.subTest(payload=payload):
                with self.assertRaises(InvalidInputError):
                    decode(payload)


if __name__ == "__main__":
    unittest.main()
