# src/audio/__init__.py
# ======================
# Audio Processing Layer — Tone Transfer Core
#
# Responsibility:
#   - AudioBuffer / NormalizationSpec value types and error taxonomy
#   - Decoding uploads into AudioBuffers (pydub)
#   - Normalization to the feature model's mono / 16 kHz / 20480-sample shape
#   - 16-bit PCM WAV encoding of synthesized audio
#
# Public API:
#   - normalize() — any buffer -> model-ready buffer
#   - encode()    — float samples -> WAV bytes

from src.audio.buffer import (  # noqa: F401
    AudioBuffer,
    AudioPipelineError,
    InvalidInputError,
    NormalizationSpec,
    UnsupportedRateError,
    model_input_spec,
)
from src.audio.normalizer import normalize  # noqa: F401
from src.audio.wav_encoder import encode  # noqa: F401
