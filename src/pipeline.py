"""
src/pipeline.py
================
Tone Transfer Orchestrator — Integration Layer

Responsibility:
    1. Decode the uploaded voice sample
    2. Normalize it to the feature model's input shape
    3. Hand it to the external feature extractor (SPICE)
    4. Hand the opaque features to the external synthesizer (DDSP)
       together with the instrument checkpoint and settings
    5. Encode the synthesized samples as 16-bit PCM WAV
    6. Verify every stage output before passing it on

This layer MUST NOT:
    - Inspect or modify features or synthesizer settings
    - Retry or reinterpret failures from the external models
    - Return a partially built buffer or WAV file

Stage order:
    decode → normalize → verify → features → synthesize → encode → verify
"""

import logging
import os
from typing import Any, Mapping, Optional

import numpy as np

from src.audio.buffer import (
    AudioBuffer,
    NormalizationSpec,
    model_input_spec,
    validate_sample_rate,
)
from src.audio.decoder import decode_audio
from src.audio.normalizer import normalize
from src.audio.wav_encoder import encode
from src.phase_validator import verify_normalized_buffer, verify_wav_bytes
from src.synthesis.models import FeatureExtractor, Synthesizer
from src.synthesis.presets import DEFAULT_INSTRUMENT, Instrument, checkpoint_url

logger = logging.getLogger("tonetransfer.pipeline")

OUTPUT_SAMPLE_RATE: int = int(os.getenv("OUTPUT_SAMPLE_RATE", "16000"))


# =====================================================================
# Stage 1–2 — Model input
# =====================================================================


def prepare_model_input(
    audio_bytes: bytes,
    filename: str,
    spec: Optional[NormalizationSpec] = None,
) -> AudioBuffer:
    """
    Decode an upload and shape it for the feature model.

    Args:
        audio_bytes: Raw uploaded file.
        filename:    Original filename (format hint).
        spec:        Target shape; defaults to mono / 16 kHz / 20480 samples.

    Returns:
        Verified, model-ready AudioBuffer.
    """
    spec = spec or model_input_spec()

    decoded = decode_audio(audio_bytes, filename)
    normalized = normalize(decoded, spec)
    verify_normalized_buffer(normalized, spec)
    return normalized


# =====================================================================
# Full run
# =====================================================================


def run_tone_transfer(
    audio_bytes: bytes,
    filename: str,
    extractor: FeatureExtractor,
    synthesizer: Synthesizer,
    instrument: "str | Instrument" = DEFAULT_INSTRUMENT,
    settings: Optional[Mapping[str, Any]] = None,
    output_sample_rate: Optional[int] = None,
) -> bytes:
    """
    Resynthesize an uploaded voice sample in the timbre of *instrument*.

    Args:
        audio_bytes:        Raw uploaded file.
        filename:           Original filename (format hint).
        extractor:          External pitch/loudness feature model.
        synthesizer:        External instrument model.
        instrument:         Preset name; resolved to a checkpoint URL.
        settings:           Synthesizer settings, passed through untouched.
        output_sample_rate: Rate written to the WAV header
                            (default OUTPUT_SAMPLE_RATE).

    Returns:
        Complete 16-bit PCM mono WAV file bytes.

    Raises:
        AudioValidationError / InvalidInputError: Bad upload.
        UnknownPresetError:     Unknown instrument.
        PhaseVerificationError: A stage produced a mis-shapen output.
        Exception:              Any failure of the external models,
                                propagated unchanged.
    """
    # Resolve the checkpoint and output rate first so bad arguments fail before any work.
    checkpoint = checkpoint_url(instrument)
    rate = OUTPUT_SAMPLE_RATE if output_sample_rate is None else output_sample_rate
    validate_sample_rate(rate)

    model_input = prepare_model_input(audio_bytes, filename)

    try:
        features = extractor.get_audio_features(model_input)
    except Exception:
        logger.error("Feature extraction failed for %s.", filename)
        raise

    try:
        samples = synthesizer.synthesize(features, checkpoint, settings)
    except Exception:
        logger.error("Synthesis failed for %s with checkpoint %s.", filename, checkpoint)
        raise

    pcm_count = int(np.size(samples))
    wav_bytes = encode(samples, rate)
    verify_wav_bytes(wav_bytes, pcm_count, rate)

    logger.info(
        "Tone transfer complete: %s -> %s, %d samples @ %d Hz.",
        filename, checkpoint, pcm_count, rate,
    )
    return wav_bytes
