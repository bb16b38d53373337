"""
src/audio/normalizer.py
========================
Audio Normalizer — Tone Transfer Core

Responsibility:
    - Convert a decoded buffer of any shape to mono
    - Resample to the target sample rate (band-limited)
    - Crop or zero-pad to the target sample count
    - Return a new AudioBuffer ready for the feature model

Every stage is a pure function returning new arrays; the input buffer is
never mutated.

This module does NOT:
    - Decode or encode audio files
    - Call the feature or synthesis models
"""

import logging
import math
from fractions import Fraction
from typing import Callable, Optional

import numpy as np
from scipy import signal

from src.audio.buffer import (
    AudioBuffer,
    NormalizationSpec,
    UnsupportedRateError,
    validate_buffer,
)

logger = logging.getLogger("tonetransfer.audio.normalizer")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Above this up/down factor a polyphase filter gets too long to design;
# fall back to FFT resampling, which is band-limited as well.
_MAX_POLYPHASE_FACTOR: int = 1024

Resampler = Callable[[np.ndarray, int, float, Optional[int]], np.ndarray]


# ---------------------------------------------------------------------------
# Stage 1 — Downmix
# ---------------------------------------------------------------------------


def downmix_to_mono(buffer: AudioBuffer) -> AudioBuffer:
    """
    Average all channels into one.

    Mono input is returned as-is (same object).
    """
    if buffer.num_channels == 1:
        return buffer

    mixed = buffer.channels.astype(np.float64).mean(axis=0)
    logger.debug("Downmixed %d channels to mono.", buffer.num_channels)
    return AudioBuffer(channels=mixed[np.newaxis, :], sample_rate=buffer.sample_rate)


# ---------------------------------------------------------------------------
# Stage 2 — Resample
# ---------------------------------------------------------------------------


def resample(
    samples: np.ndarray,
    orig_sr: int,
    target_sr: float,
    num_samples: Optional[int] = None,
) -> np.ndarray:
    """
    Band-limited resampling of a 1-D signal.

    Args:
        samples:     Mono signal.
        orig_sr:     Source rate in Hz.
        target_sr:   Destination rate in Hz.
        num_samples: Exact output length; defaults to
                     ``round(len(samples) * target_sr / orig_sr)``.

    Returns:
        float32 array at *target_sr*.

    Raises:
        UnsupportedRateError: If the ratio is zero or non-finite.
    """
    ratio = _resample_ratio(orig_sr, target_sr)
    x = np.asarray(samples, dtype=np.float32)

    if num_samples is None:
        num_samples = round(len(x) * ratio)

    if ratio == 1:
        return crop_or_pad(x, num_samples)

    if len(x) == 0:
        return np.zeros(num_samples, dtype=np.float32)

    up, down = ratio.numerator, ratio.denominator
    if max(up, down) <= _MAX_POLYPHASE_FACTOR:
        y = signal.resample_poly(x.astype(np.float64), up, down)
    else:
        natural = max(1, round(len(x) * ratio))
        y = signal.resample(x.astype(np.float64), natural)

    logger.debug(
        "Resampled %d samples %s Hz -> %s Hz (%d output samples).",
        len(x), orig_sr, target_sr, num_samples,
    )
    return crop_or_pad(y.astype(np.float32), num_samples)


def _resample_ratio(orig_sr: int, target_sr: float) -> Fraction:
    """Exact target/source ratio as a reduced fraction."""
    try:
        target = float(target_sr)
        source = float(orig_sr)
    except (TypeError, ValueError) as exc:
        raise UnsupportedRateError(f"Sample rates must be numeric: {exc}") from exc

    if not (math.isfinite(target) and math.isfinite(source)):
        raise UnsupportedRateError(
            f"Resample ratio {target_sr}/{orig_sr} is not finite."
        )
    if target <= 0 or source <= 0:
        raise UnsupportedRateError(
            f"Resample ratio {target_sr}/{orig_sr} is zero or negative."
        )

    return Fraction(target) / Fraction(source)


# ---------------------------------------------------------------------------
# Stage 3 — Crop or pad
# ---------------------------------------------------------------------------


def crop_or_pad(samples: np.ndarray, target_length: int) -> np.ndarray:
    """
    Keep the first *target_length* samples, or right-pad with zeros.

    Returns a new float32 array; a correctly sized input is copied unchanged.
    """
    x = np.asarray(samples, dtype=np.float32)
    if x.size > target_length:
        return x[:target_length].copy()
    if x.size < target_length:
        return np.pad(x, (0, target_length - x.size))
    return x.copy()


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize(
    buffer: AudioBuffer,
    spec: NormalizationSpec,
    resampler: Resampler = resample,
) -> AudioBuffer:
    """
    Full normalization for a single decoded buffer.

    Steps:
        1. Validate the buffer
        2. Downmix to mono
        3. Resample straight to the resolved target length
        4. Crop or pad to exactly that length

    Args:
        buffer:    Decoded audio of any shape.
        spec:      Target rate / length.
        resampler: Callable with the :func:`resample` signature.

    Returns:
        Mono AudioBuffer at ``spec.target_sample_rate`` holding exactly
        the resolved number of samples.

    Raises:
        InvalidInputError:    On zero channels or a non-positive rate.
        UnsupportedRateError: If the resample ratio is zero or non-finite.
    """
    # 1. Validate
    validate_buffer(buffer)
    _resample_ratio(buffer.sample_rate, spec.target_sample_rate)
    if not isinstance(buffer, AudioBuffer):
        buffer = AudioBuffer.from_channels(buffer.channels, buffer.sample_rate)

    # 2. Downmix
    mono = downmix_to_mono(buffer)

    # 3. Resample, requesting the final length in the same pass
    target_length = spec.resolve_length(mono.num_samples, mono.sample_rate)
    resampled = resampler(
        mono.mono(), mono.sample_rate, spec.target_sample_rate, target_length,
    )

    # 4. Crop / pad (no-op when the resampler honoured target_length)
    fixed = crop_or_pad(resampled, target_length)

    logger.info(
        "Normalized audio: %d ch @ %d Hz, %d samples -> mono @ %s Hz, %d samples.",
        buffer.num_channels, buffer.sample_rate, buffer.num_samples,
        spec.target_sample_rate, target_length,
    )
    return AudioBuffer(
        channels=fixed[np.newaxis, :],
        sample_rate=int(spec.target_sample_rate),
    )
