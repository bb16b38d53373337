"""
main.py
========
Central entry point for the Tone Transfer service.

Run with:
    uvicorn main:app --reload
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()  # Load .env before any module reads env vars

# Configure logging for the entire application
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# pydub logs every ffmpeg invocation at DEBUG; keep it out of pipeline output.
logging.getLogger("pydub.converter").setLevel(logging.WARNING)

from src.api.upload import app  # noqa: F401, E402

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
