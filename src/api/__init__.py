# src/api/__init__.py
# =====================
# API Layer — Tone Transfer
#
# Responsibility:
#   - Expose GET /instruments, POST /normalize and POST /tone-transfer
#   - Accept audio uploads via multipart/form-data
#   - Return 16-bit PCM WAV responses
