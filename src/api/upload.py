"""
src/api/upload.py
==================
API Upload Endpoints — Tone Transfer

Responsibility:
    - Expose GET  /api/v1/instruments
    - Expose POST /api/v1/normalize      (upload → model-ready WAV)
    - Expose POST /api/v1/tone-transfer  (upload + instrument → WAV)
    - Reject requests missing an audio file or with disallowed types
    - Delegate all audio work to src.pipeline

The feature extractor and synthesizer are injected by the host through
``app.state.feature_extractor`` and ``app.state.synthesizer``; tone
transfer answers 503 until both are set.
"""

import asyncio
import logging

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from src.audio.buffer import InvalidInputError, UnsupportedRateError
from src.audio.decoder import AudioDecodeError
from src.audio.wav_encoder import encode_buffer
from src.phase_validator import PhaseVerificationError
from src.pipeline import prepare_model_input, run_tone_transfer
from src.synthesis.presets import DEFAULT_INSTRUMENT, UnknownPresetError, list_presets

logger = logging.getLogger("tonetransfer.api")

WAV_MEDIA_TYPE = "audio/wav"


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Tone Transfer",
    description="Voice-to-instrument tone transfer — audio normalization and WAV export.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.feature_extractor = None
app.state.synthesizer = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/api/v1/instruments")
async def instruments():
    """List the available instruments and their checkpoint URLs."""
    return {"default": DEFAULT_INSTRUMENT.value, "instruments": list_presets()}


@app.post("/api/v1/normalize")
async def normalize_upload(audio_file: UploadFile = File(...)):
    """
    Return the uploaded audio shaped for the feature model
    (mono, 16 kHz, 20480 samples) as a 16-bit WAV file.
    """
    filename, audio_bytes = await _read_upload(audio_file)

    try:
        buffer = await asyncio.to_thread(prepare_model_input, audio_bytes, filename)
        wav_bytes = encode_buffer(buffer)
    except Exception as exc:
        raise _to_http_error(exc)

    return Response(content=wav_bytes, media_type=WAV_MEDIA_TYPE)


@app.post("/api/v1/tone-transfer")
async def tone_transfer(
    request: Request,
    audio_file: UploadFile = File(...),
    instrument: str = Form(DEFAULT_INSTRUMENT.value),
):
    """
    Resynthesize the uploaded voice sample as *instrument* and return WAV.
    """
    extractor = request.app.state.feature_extractor
    synthesizer = request.app.state.synthesizer
    if extractor is None or synthesizer is None:
        raise HTTPException(status_code=503, detail="Tone transfer models are not configured.")

    filename, audio_bytes = await _read_upload(audio_file)

    try:
        wav_bytes = await asyncio.to_thread(
            run_tone_transfer, audio_bytes, filename, extractor, synthesizer, instrument,
        )
    except Exception as exc:
        raise _to_http_error(exc)

    logger.info("Tone transfer to %s complete — returning %d bytes.", instrument, len(wav_bytes))
    return Response(
        content=wav_bytes,
        media_type=WAV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{instrument}.wav"'},
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _read_upload(audio_file: UploadFile) -> tuple[str, bytes]:
    """Read an uploaded file, rejecting missing names or unreadable bodies."""
    if audio_file is None or not audio_file.filename:
        raise HTTPException(status_code=400, detail="Audio file is required.")

    logger.info("Audio file received: %s", audio_file.filename)

    try:
        audio_bytes = await audio_file.read()
    except Exception:
        raise HTTPException(status_code=400, detail="Failed to read uploaded file.")

    logger.info("File size: %.2f KB", len(audio_bytes) / 1024)
    return audio_file.filename, audio_bytes


def _to_http_error(exc: Exception) -> HTTPException:
    """Map pipeline exceptions to HTTP status codes."""
    if isinstance(exc, (InvalidInputError, UnsupportedRateError, UnknownPresetError)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, AudioDecodeError):
        logger.error("Decoder failure: %s", exc)
        return HTTPException(status_code=500, detail=str(exc))
    if isinstance(exc, PhaseVerificationError):
        logger.error("Stage verification failed: %s", exc)
        return HTTPException(
            status_code=500,
            detail=f"Pipeline verification error in {exc.phase}: {exc.message}",
        )
    logger.error("Upstream model failure: %s", exc, exc_info=True)
    return HTTPException(status_code=502, detail=f"Tone transfer failed: {exc}")
