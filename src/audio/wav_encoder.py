"""
src/audio/wav_encoder.py
=========================
WAV Encoder — Tone Transfer Core

Responsibility:
    - Quantize a float sample stream to signed 16-bit PCM
    - Wrap it in a canonical 44-byte RIFF/WAVE header (mono, little-endian)
    - Read PCM WAV bytes back into an AudioBuffer

Header layout written by ``wave`` for 16-bit mono PCM:

    0  "RIFF"   4  36 + 2N   8  "WAVE"   12 "fmt "   16 16
    20 1 (PCM)  22 1 (mono)  24 rate     28 rate * 2  32 2
    34 16       36 "data"    40 2N       44 samples

This module does NOT:
    - Resample or normalize audio
    - Touch the filesystem
"""

import io
import logging
import sys
import wave
from typing import Sequence

import numpy as np

from src.audio.buffer import AudioBuffer, InvalidInputError, validate_sample_rate

logger = logging.getLogger("tonetransfer.audio.wav_encoder")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HEADER_SIZE: int = 44
BITS_PER_SAMPLE: int = 16
SAMPLE_WIDTH: int = BITS_PER_SAMPLE // 8
NUM_CHANNELS: int = 1

_NEGATIVE_SCALE: float = 32768.0  # 0x8000
_POSITIVE_SCALE: float = 32767.0  # 0x7fff
_MAX_U32: int = 0xFFFFFFFF


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def float_to_pcm16(samples: Sequence[float]) -> np.ndarray:
    """
    Quantize floats to signed 16-bit PCM values.

    NaN maps to 0, values are clamped to [-1.0, 1.0], negatives scale by
    0x8000 and non-negatives by 0x7fff, then truncate toward zero.
    """
    x = np.asarray(samples, dtype=np.float64).reshape(-1)
    x = np.where(np.isnan(x), 0.0, x)
    x = np.clip(x, -1.0, 1.0)
    scaled = np.where(x < 0, x * _NEGATIVE_SCALE, x * _POSITIVE_SCALE)
    return np.trunc(scaled).astype(np.int16)


def encode(samples: Sequence[float], sample_rate: int) -> bytes:
    """
    Encode a mono float stream as a complete 16-bit PCM WAV file.

    Args:
        samples:     Float samples, nominally in [-1.0, 1.0].
        sample_rate: Sample rate in Hz.

    Returns:
        ``44 + 2 * len(samples)`` bytes.

    Raises:
        InvalidInputError: If sample_rate is not a positive integer, or the
            file would overflow the 32-bit RIFF size fields.
    """
    validate_sample_rate(sample_rate)
    if sample_rate * SAMPLE_WIDTH * NUM_CHANNELS > _MAX_U32:
        raise InvalidInputError(f"Sample rate {sample_rate} does not fit a WAV header.")

    pcm = float_to_pcm16(samples)
    if HEADER_SIZE - 8 + pcm.nbytes > _MAX_U32:
        raise InvalidInputError(f"{pcm.size} samples do not fit a WAV file.")

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(NUM_CHANNELS)
        wf.setsampwidth(SAMPLE_WIDTH)
        wf.setframerate(int(sample_rate))
        wf.writeframes(pcm.astype(_frame_dtype(2)).tobytes())

    data = buf.getvalue()
    logger.debug("Encoded %d samples @ %d Hz into %d WAV bytes.", pcm.size, sample_rate, len(data))
    return data


def encode_buffer(buffer: AudioBuffer) -> bytes:
    """Encode the first channel of *buffer* as WAV."""
    return encode(buffer.mono(), buffer.sample_rate)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode(wav_bytes: bytes) -> AudioBuffer:
    """
    Read PCM WAV bytes (8/16/32-bit) into a float32 AudioBuffer.

    Raises:
        InvalidInputError: If the bytes are not a readable PCM WAV file.
    """
    if not wav_bytes:
        raise InvalidInputError("WAV data is empty.")

    try:
        with wave.open(io.BytesIO(wav_bytes), "rb") as wf:
            sample_rate = wf.getframerate()
            n_channels = wf.getnchannels()
            sampwidth = wf.getsampwidth()
            raw_pcm = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as exc:
        raise InvalidInputError(f"Failed to read WAV audio: {exc}") from exc

    # 8-bit WAV is unsigned, centred on 128.
    if sampwidth == 1:
        pcm = (np.frombuffer(raw_pcm, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    elif sampwidth == 2:
        pcm = np.frombuffer(raw_pcm, dtype=_frame_dtype(2)).astype(np.float32) / 32768.0
    elif sampwidth == 4:
        pcm = np.frombuffer(raw_pcm, dtype=_frame_dtype(4)).astype(np.float32) / 2147483648.0
    else:
        raise InvalidInputError(f"Unsupported WAV sample width: {sampwidth * 8}-bit.")

    channels = pcm.reshape(-1, n_channels).T
    return AudioBuffer(channels=channels, sample_rate=sample_rate)


def read_pcm16(wav_bytes: bytes) -> np.ndarray:
    """Return the raw int16 samples of a 16-bit WAV file."""
    try:
        with wave.open(io.BytesIO(wav_bytes), "rb") as wf:
            sampwidth = wf.getsampwidth()
            raw_pcm = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as exc:
        raise InvalidInputError(f"Failed to read WAV audio: {exc}") from exc

    if sampwidth != SAMPLE_WIDTH:
        raise InvalidInputError(f"Expected 16-bit WAV, got {sampwidth * 8}-bit.")
    return np.frombuffer(raw_pcm, dtype=_frame_dtype(2)).astype(np.int16)


def _frame_dtype(sampwidth: int) -> np.dtype:
    """
    Integer dtype in the byte order ``wave`` exchanges frames in.

    ``wave`` byteswaps frames whenever ``sys.byteorder`` is "big", so the
    data handed to it (or read from it) must follow that same order for the
    file itself to stay little-endian.
    """
    order = ">" if sys.byteorder == "big" else "<"
    return np.dtype(f"{order}i{sampwidth}")
