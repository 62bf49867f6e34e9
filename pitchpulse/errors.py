from .constants import MAX_ERROR_CHARS


class InputError(ValueError):
    """Missing or invalid request input; never retried."""


class GenerationError(RuntimeError):
    """The text-generation provider failed or returned nothing usable."""


class ResponseFormatError(ValueError):
    """Model output could not be parsed into the expected JSON shape."""


class TranscriptionError(RuntimeError):
    pass


class DocumentExtractionError(ValueError):
    pass


class StorageFullError(RuntimeError):
    pass


def truncate_message(text: str, max_chars: int = MAX_ERROR_CHARS) -> str:
    value = (text or "").strip()
    if len(value) <= max_chars:
        return value
    return value[: max_chars - 3] + "..."
