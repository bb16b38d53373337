"""
src/synthesis/models.py
========================
Model Collaborator Interfaces — Tone Transfer

The pitch/loudness extractor (SPICE) and the instrument resynthesizer
(DDSP) live outside this repository. The pipeline only depends on these
two structural interfaces; the host application injects real models.

Features are an opaque payload: nothing here inspects them.
"""

from typing import Any, Mapping, Optional, Protocol, Sequence, runtime_checkable

from src.audio.buffer import AudioBuffer


@runtime_checkable
class FeatureExtractor(Protocol):
    """Extracts pitch / loudness features from a model-ready buffer."""

    def get_audio_features(self, buffer: AudioBuffer) -> Any:
        ...


@runtime_checkable
class Synthesizer(Protocol):
    """Renders features in the timbre of the instrument behind *checkpoint*."""

    def synthesize(
        self,
        features: Any,
        checkpoint: str,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> Sequence[float]:
        ...
