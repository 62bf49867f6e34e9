MAX_UPLOAD_BYTES = 45 * 1024 * 1024   # 45 MB, same ceiling as the audio fallback
MAX_REQUEST_BYTES = 64 * 1024 * 1024  # 64 MB (base64 audio inflates by ~4/3)
CHUNK_SIZE = 1024 * 1024

SEGMENT_DURATION_MS = 20_000
WEAK_MOMENT_THRESHOLD = 0.55
DEFAULT_CALL_DELAY_SECONDS = 2.1
MAX_ERROR_CHARS = 1200
