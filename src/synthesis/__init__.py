# src/synthesis/__init__.py
# ==========================
# Synthesis Boundary — Tone Transfer
#
# Responsibility:
#   - Instrument presets and their DDSP checkpoint URLs
#   - Structural interfaces for the external feature / synthesis models
#
# No model is implemented here; real models are injected by the host.

from src.synthesis.presets import (  # noqa: F401
    DEFAULT_INSTRUMENT,
    Instrument,
    UnknownPresetError,
    checkpoint_url,
    list_presets,
    parse_instrument,
)
from src.synthesis.models import FeatureExtractor, Synthesizer  # noqa: F401
