"""
src/synthesis/presets.py
=========================
Instrument Presets — Tone Transfer

Responsibility:
    - Enumerate the DDSP instruments a voice can be transferred to
    - Map an instrument to its checkpoint URL

The checkpoint base URL can be pointed at a mirror with
DDSP_CHECKPOINT_BASE_URL.
"""

import logging
import os
from enum import Enum

logger = logging.getLogger("tonetransfer.synthesis.presets")


CHECKPOINT_BASE_URL: str = os.getenv(
    "DDSP_CHECKPOINT_BASE_URL",
    "https://storage.googleapis.com/magentadata/js/checkpoints/ddsp",
).rstrip("/")


class UnknownPresetError(ValueError):
    """Raised when an instrument name has no checkpoint."""
    pass


class Instrument(str, Enum):
    """Instruments with a published DDSP checkpoint."""

    VIOLIN = "violin"
    TENOR_SAXOPHONE = "tenor_saxophone"
    TRUMPET = "trumpet"
    FLUTE = "flute"


DEFAULT_INSTRUMENT: Instrument = Instrument.TENOR_SAXOPHONE

_VALID_INSTRUMENTS: set[str] = {e.value for e in Instrument}


def parse_instrument(name: "str | Instrument") -> Instrument:
    """
    Resolve an instrument name (case-insensitive, spaces or dashes allowed).

    Raises:
        UnknownPresetError: If the name matches no instrument.
    """
    if isinstance(name, Instrument):
        return name

    key = str(name).strip().lower().replace("-", "_").replace(" ", "_")
    if key not in _VALID_INSTRUMENTS:
        raise UnknownPresetError(
            f"Unknown instrument '{name}'. Available: {', '.join(sorted(_VALID_INSTRUMENTS))}"
        )
    return Instrument(key)


def checkpoint_url(instrument: "str | Instrument") -> str:
    """Return the DDSP checkpoint URL for *instrument*."""
    return f"{CHECKPOINT_BASE_URL}/{parse_instrument(instrument).value}"


def list_presets() -> list[dict[str, str]]:
    """All instruments with their checkpoint URLs, in declaration order."""
    return [
        {"instrument": inst.value, "checkpoint": checkpoint_url(inst)}
        for inst in Instrument
    ]
