"""
src/phase_validator.py
=======================
Stage Output Validator — Tone Transfer Integration Layer

Responsibility:
    - Validate the outputs of the normalization and encoding stages
    - FAIL FAST with clear errors if a stage output is mis-shapen
    - NO auto-correction — a bad output is an error, never patched

This module does NOT:
    - Execute any stage logic
    - Call the feature or synthesis models
    - Modify stage outputs
"""

import logging
import struct

import numpy as np

from src.audio.buffer import AudioBuffer, NormalizationSpec
from src.audio.wav_encoder import HEADER_SIZE

logger = logging.getLogger("tonetransfer.phase_validator")


# =====================================================================
# Custom exception for stage verification failures
# =====================================================================


class PhaseVerificationError(Exception):
    """Raised when a stage output fails verification."""

    def __init__(self, phase: str, message: str):
        self.phase = phase
        self.message = message
        super().__init__(f"Phase {phase} verification failed: {message}")


# =====================================================================
# Normalization output
# =====================================================================


def verify_normalized_buffer(
    buffer: AudioBuffer,
    spec: NormalizationSpec,
) -> None:
    """
    Verify a normalizer output against the NormalizationSpec it was produced for.

    Checks:
        - Output is an AudioBuffer
        - Exactly one channel
        - Sample rate equals spec.target_sample_rate
        - Sample count equals spec.target_length (when set)
        - Every sample is finite

    Raises:
        PhaseVerificationError: If any check fails.
    """
    if not isinstance(buffer, AudioBuffer):
        raise PhaseVerificationError(
            "normalize", f"Expected AudioBuffer, got {type(buffer).__name__}"
        )

    if buffer.num_channels != 1:
        raise PhaseVerificationError(
            "normalize", f"Expected mono output, got {buffer.num_channels} channels"
        )

    if buffer.sample_rate != spec.target_sample_rate:
        raise PhaseVerificationError(
            "normalize",
            f"Sample rate {buffer.sample_rate} != target {spec.target_sample_rate}",
        )

    if spec.target_length is not None and buffer.num_samples != spec.target_length:
        raise PhaseVerificationError(
            "normalize",
            f"Length {buffer.num_samples} != target {spec.target_length}",
        )

    if not np.isfinite(buffer.channels).all():
        raise PhaseVerificationError("normalize", "Output contains NaN or infinite samples")

    logger.info(
        "Normalize verification passed: mono @ %d Hz, %d samples.",
        buffer.sample_rate, buffer.num_samples,
    )


# =====================================================================
# Encoder output
# =====================================================================


def verify_wav_bytes(data: bytes, sample_count: int, sample_rate: int) -> None:
    """
    Verify an encoder output is a canonical 16-bit mono PCM WAV file.

    Checks:
        - Total size is 44 + 2 * sample_count
        - RIFF / WAVE / fmt / data tags at their fixed offsets
        - Size, format, channel, rate and bit-depth fields are consistent

    Raises:
        PhaseVerificationError: If any check fails.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise PhaseVerificationError(
            "encode", f"Expected bytes, got {type(data).__name__}"
        )

    expected_size = HEADER_SIZE + 2 * sample_count
    if len(data) != expected_size:
        raise PhaseVerificationError(
            "encode", f"WAV size {len(data)} != expected {expected_size}"
        )

    (
        riff, chunk_size, wave_tag, fmt_tag, fmt_size, audio_format,
        channels, rate, byte_rate, block_align, bits, data_tag, data_size,
    ) = struct.unpack("<4sI4s4sIHHIIHH4sI", bytes(data[:HEADER_SIZE]))

    expected_fields = {
        "ChunkID": (riff, b"RIFF"),
        "ChunkSize": (chunk_size, 36 + 2 * sample_count),
        "Format": (wave_tag, b"WAVE"),
        "Subchunk1ID": (fmt_tag, b"fmt "),
        "Subchunk1Size": (fmt_size, 16),
        "AudioFormat": (audio_format, 1),
        "NumChannels": (channels, 1),
        "SampleRate": (rate, sample_rate),
        "ByteRate": (byte_rate, sample_rate * 2),
        "BlockAlign": (block_align, 2),
        "BitsPerSample": (bits, 16),
        "Subchunk2ID": (data_tag, b"data"),
        "Subchunk2Size": (data_size, 2 * sample_count),
    }
    for field, (actual, expected) in expected_fields.items():
        if actual != expected:
            raise PhaseVerificationError(
                "encode", f"Header field {field} is {actual!r}, expected {expected!r}"
            )

    logger.info(
        "Encode verification passed: %d samples @ %d Hz (%d bytes).",
        sample_count, sample_rate, len(data),
    )
