"""
src/audio/buffer.py
====================
Audio Buffer Data Model — Tone Transfer Core

Responsibility:
    - Define the immutable AudioBuffer value type shared by every stage
    - Define NormalizationSpec (target rate / length / channels)
    - Define the exception taxonomy for the audio pipeline

This module does NOT:
    - Decode, resample or encode audio
    - Perform any I/O
"""

import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

logger = logging.getLogger("tonetransfer.audio.buffer")


# ---------------------------------------------------------------------------
# Model input defaults (SPICE expects mono 16 kHz, 20480 samples)
# ---------------------------------------------------------------------------

MODEL_SAMPLE_RATE: int = int(os.getenv("MODEL_SAMPLE_RATE", "16000"))
MODEL_INPUT_LENGTH: int = int(os.getenv("MODEL_INPUT_LENGTH", "20480"))
MODEL_CHANNELS: int = 1


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class AudioPipelineError(Exception):
    """Base class for all audio pipeline failures."""
    pass


class InvalidInputError(AudioPipelineError, ValueError):
    """Raised for a malformed or degenerate buffer, rate or length."""
    pass


class UnsupportedRateError(AudioPipelineError, ValueError):
    """Raised when a resampling ratio is zero or non-finite."""
    pass


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """
    Immutable multi-channel float audio.

    ``channels`` is a read-only float32 array shaped
    ``(n_channels, n_samples)``, so every channel has the same length.
    Use :meth:`from_channels` to build one from arbitrary sequences.
    """

    channels: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        validate_sample_rate(self.sample_rate)

        try:
            data = np.array(self.channels, dtype=np.float32)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"AudioBuffer channels are not numeric or ragged: {exc}") from exc
        if data.ndim != 2:
            raise InvalidInputError(
                f"AudioBuffer channels must be 2-D (channels, samples), got {data.ndim}-D."
            )
        if data.shape[0] < 1:
            raise InvalidInputError("AudioBuffer must have at least one channel.")

        data.setflags(write=False)
        object.__setattr__(self, "channels", data)

    @classmethod
    def from_channels(
        cls,
        channels: Any,
        sample_rate: int,
    ) -> "AudioBuffer":
        """
        Build a buffer from a 1-D sample sequence (mono) or a sequence of
        equal-length channel sequences.

        Raises:
            InvalidInputError: On zero channels or ragged channel lengths.
        """
        if isinstance(channels, np.ndarray):
            data = channels
        elif _is_nested(channels):
            seqs = [np.asarray(ch, dtype=np.float32).reshape(-1) for ch in channels]
            if not seqs:
                raise InvalidInputError("AudioBuffer must have at least one channel.")
            lengths = {s.shape[0] for s in seqs}
            if len(lengths) != 1:
                raise InvalidInputError(
                    f"All channels must have identical length, got {sorted(lengths)}."
                )
            data = np.stack(seqs)
        else:
            data = np.asarray(channels, dtype=np.float32)

        if data.ndim == 1:
            data = data[np.newaxis, :]
        return cls(channels=data, sample_rate=sample_rate)

    @property
    def num_channels(self) -> int:
        return int(self.channels.shape[0])

    @property
    def num_samples(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.num_samples / self.sample_rate

    def mono(self) -> np.ndarray:
        """Return channel 0 as a read-only 1-D array."""
        return self.channels[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AudioBuffer):
            return NotImplemented
        return (
            self.sample_rate == other.sample_rate
            and self.channels.shape == other.channels.shape
            and bool(np.array_equal(self.channels, other.channels))
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"AudioBuffer(channels={self.num_channels}, samples={self.num_samples}, "
            f"sample_rate={self.sample_rate})"
        )


@dataclass(frozen=True)
class NormalizationSpec:
    """
    Target shape for :func:`src.audio.normalizer.normalize`.

    When ``target_length`` is None the output length follows the input
    duration: ``ceil(duration * target_sample_rate)``.
    """

    target_sample_rate: float = MODEL_SAMPLE_RATE
    target_length: Optional[int] = None
    target_channels: int = MODEL_CHANNELS

    def __post_init__(self) -> None:
        rate = self.target_sample_rate
        # Zero / negative / non-finite rates surface later as UnsupportedRateError.
        if isinstance(rate, (int, float, np.number)) and math.isfinite(rate) and rate > 0:
            if not float(rate).is_integer():
                raise InvalidInputError(
                    f"target_sample_rate must be a whole number of Hz, got {rate}."
                )
        if self.target_channels != MODEL_CHANNELS:
            raise InvalidInputError(
                f"Only mono output is supported (target_channels={self.target_channels})."
            )
        if self.target_length is not None:
            if isinstance(self.target_length, bool) or not isinstance(
                self.target_length, (int, np.integer)
            ):
                raise InvalidInputError(
                    f"target_length must be an integer, got {self.target_length!r}."
                )
            if self.target_length < 0:
                raise InvalidInputError(
                    f"target_length must be non-negative, got {self.target_length}."
                )

    def resolve_length(self, num_samples: int, sample_rate: int) -> int:
        """Return the output sample count for an input of this shape."""
        if self.target_length is not None:
            return int(self.target_length)
        # Exact ceil(num_samples * target / source) without float drift.
        return -(-num_samples * int(self.target_sample_rate) // sample_rate)


def model_input_spec() -> NormalizationSpec:
    """The fixed mono / 16 kHz / 20480-sample shape the feature model expects."""
    return NormalizationSpec(
        target_sample_rate=MODEL_SAMPLE_RATE,
        target_length=MODEL_INPUT_LENGTH,
    )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def validate_sample_rate(sample_rate: Any) -> None:
    """
    Check that a sample rate is a positive integer.

    Raises:
        InvalidInputError: If the rate is not a positive integer.
    """
    if isinstance(sample_rate, bool) or not isinstance(sample_rate, (int, np.integer)):
        raise InvalidInputError(
            f"Sample rate must be an integer, got {type(sample_rate).__name__}."
        )
    if sample_rate <= 0:
        raise InvalidInputError(f"Sample rate must be positive, got {sample_rate}.")


def validate_buffer(buffer: Any) -> None:
    """
    Check a buffer-like object before normalization.

    Accepts anything exposing ``channels`` and ``sample_rate`` so callers
    holding a raw decoder result get the same error taxonomy.

    Raises:
        InvalidInputError: On zero channels, ragged channels or a bad rate.
    """
    channels = getattr(buffer, "channels", None)
    if channels is None or len(channels) == 0:
        raise InvalidInputError("Audio buffer has no channels.")

    validate_sample_rate(getattr(buffer, "sample_rate", None))

    lengths = {len(ch) for ch in channels}
    if len(lengths) != 1:
        raise InvalidInputError(
            f"All channels must have identical length, got {sorted(lengths)}."
        )


def _is_nested(channels: Sequence[Any]) -> bool:
    """True when *channels* is a sequence of per-channel sequences."""
    if len(channels) == 0:
        return True
    first = channels[0]
    return isinstance(first, np.ndarray) or hasattr(first, "__len__")
