"""
src/audio/decoder.py
=====================
Audio Decoder — Tone Transfer Input Boundary

Responsibility:
    - Accept browser recordings (webm/ogg) and common audio files, reject empty
      or over-long voice samples
    - Decode container/codec data with pydub (ffmpeg for compressed formats)
    - Return the decoded audio as a float32 AudioBuffer, channels untouched

Channel count, sample rate and length are preserved exactly as decoded;
shaping for the feature model is src.audio.normalizer's job.

This module does NOT:
    - Downmix, resample or pad
    - Call the feature or synthesis models
"""

import io
import logging
import os

import numpy as np
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from src.audio.buffer import AudioBuffer, AudioPipelineError, InvalidInputError

logger = logging.getLogger("tonetransfer.audio.decoder")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_RECORDER_EXTENSIONS = frozenset({".webm", ".ogg"})
ALLOWED_EXTENSIONS = _RECORDER_EXTENSIONS | {".wav", ".mp3", ".m4a", ".flac"}
MAX_DURATION_SECONDS: float = float(os.getenv("MAX_DURATION_SECONDS", "600"))

_FULL_SCALE = {1: 128.0, 2: 32768.0, 4: 2147483648.0}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class AudioValidationError(InvalidInputError):
    """Raised when the uploaded audio file fails validation."""
    pass


class AudioDecodeError(AudioPipelineError):
    """Raised when the decoder fails unexpectedly."""
    pass


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def recording_format(filename: str) -> str:
    """
    Return the pydub/ffmpeg format name for an uploaded voice recording.

    Raises:
        AudioValidationError: If the filename does not name a supported
            recorder or audio file type.
    """
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise AudioValidationError(
            f"Cannot use '{filename}' as a voice sample. Upload a recording "
            f"(.webm / .ogg from the browser recorder) or an audio file "
            f"({', '.join(sorted(ALLOWED_EXTENSIONS - _RECORDER_EXTENSIONS))})."
        )
    return ext[1:]


def validate_duration(audio: AudioSegment) -> None:
    """
    Check that audio duration does not exceed the safety limit.

    Zero-length audio is accepted; the normalizer pads it with silence.

    Raises:
        AudioValidationError: If duration exceeds MAX_DURATION_SECONDS.
    """
    duration_seconds = audio.frame_count() / audio.frame_rate
    if duration_seconds > MAX_DURATION_SECONDS:
        raise AudioValidationError(
            f"Audio duration ({duration_seconds:.1f}s) exceeds the "
            f"maximum allowed ({MAX_DURATION_SECONDS:.0f}s)."
        )


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_audio(audio_bytes: bytes, filename: str) -> AudioBuffer:
    """
    Validate and decode an uploaded audio file.

    Steps:
        1. Map the filename to a recorder or audio-file format
        2. Reject an empty recording
        3. Decode with pydub
        4. Validate duration
        5. De-interleave and scale to float32

    Args:
        audio_bytes: Raw bytes of the uploaded audio file.
        filename:    Original filename (used for the format hint).

    Returns:
        AudioBuffer with the decoded channel count and sample rate.

    Raises:
        AudioValidationError: On any validation failure.
        AudioDecodeError:     On unexpected decoder failure.
    """
    # 1. File type
    fmt = recording_format(filename)

    # 2. Something was actually recorded
    if not audio_bytes:
        raise AudioValidationError(
            f"Voice sample '{filename}' is empty; record or upload some audio first."
        )

    # 3. Decode
    try:
        audio = AudioSegment.from_file(io.BytesIO(audio_bytes), format=fmt)
    except CouldntDecodeError:
        raise AudioValidationError(f"Could not decode '{filename}' as {fmt} audio.")
    except Exception as exc:
        raise AudioDecodeError(f"Unexpected error decoding audio: {exc}") from exc

    # 4. Duration check
    validate_duration(audio)

    # 5. Convert to float channels
    buffer = segment_to_buffer(audio)
    logger.info(
        "Decoded %s: %d ch @ %d Hz, %d samples (%.2fs).",
        filename, buffer.num_channels, buffer.sample_rate,
        buffer.num_samples, buffer.duration,
    )
    return buffer


def segment_to_buffer(audio: AudioSegment) -> AudioBuffer:
    """Convert a pydub segment's interleaved integer PCM to float32 channels."""
    scale = _FULL_SCALE.get(audio.sample_width)
    if scale is None:
        raise AudioDecodeError(f"Unsupported sample width: {audio.sample_width} bytes.")

    interleaved = np.asarray(audio.get_array_of_samples(), dtype=np.float32) / scale
    channels = interleaved.reshape(-1, audio.channels).T
    return AudioBuffer(channels=channels, sample_rate=int(audio.frame_rate))

