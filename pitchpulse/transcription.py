import base64
import binascii
import logging
import os
import random
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .constants import MAX_UPLOAD_BYTES
from .errors import InputError, TranscriptionError, truncate_message
from .google_stt import GoogleSpeechTranscriber, google_credentials_configured
from .models import Transcript, Word, seconds_to_ms
from .outcomes import Fallback, Ok, Outcome


logger = logging.getLogger("uvicorn.error")

DEEPGRAM_LISTEN_URL = "https://api.deepgram.com/v1/listen"
DEEPGRAM_PARAMS = {"model": "nova-2", "punctuate": "true", "utterances": "true"}
DEFAULT_TIMEOUT_SECONDS = 120.0
MOCK_SEED = 20_000

MOCK_TRANSCRIPT_TEXT = """Hello investors, I'm excited to present our startup today. We're building the next generation of AI-powered productivity tools.

Our platform helps teams collaborate more effectively by using machine learning to prioritize tasks and automate routine work. We've seen incredible traction with over 10,000 active users.

The market opportunity is massive. The productivity software market is worth 50 billion dollars and growing at 15 percent annually. We're targeting enterprise customers first.

Our unit economics are strong. Customer acquisition cost is 200 dollars with a lifetime value of 2,400 dollars. That's a 12x LTV to CAC ratio.

We've built a world-class team with experience from Google, Meta, and top startups. Our technology moat is our proprietary AI model trained on millions of productivity workflows.

We're raising 5 million dollars to expand our sales team and accelerate product development. Join us in revolutionizing how teams work."""


class Transcriber(Protocol):
    provider_name: str

    def transcribe(self, audio_bytes: bytes, content_type: Optional[str] = None) -> Transcript:
        pass

    def transcribe_url(self, audio_url: str) -> Transcript:
        pass


def mock_transcript(seed: int = MOCK_SEED) -> Transcript:
    """Canned pitch with plausible word timings; identical on every call."""
    rng = random.Random(seed)
    words: List[Word] = []
    current_ms = 0.0
    for token in MOCK_TRANSCRIPT_TEXT.split():
        duration = rng.random() * 300 + 200
        words.append(Word(text=token, start=round(current_ms), end=round(current_ms + duration)))
        current_ms += duration + rng.random() * 100
    return Transcript(text=MOCK_TRANSCRIPT_TEXT, words=words)


def decode_audio_data(audio_data: str) -> bytes:
    # Accept both raw base64 and "data:audio/webm;base64,...".
    payload = audio_data.split(",", 1)[1] if "," in audio_data else audio_data
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise InputError("audioData is not valid base64.") from exc


def parse_deepgram_response(payload: Dict[str, Any]) -> Transcript:
    channels = (payload.get("results") or {}).get("channels") or [{}]
    alternatives = channels[0].get("alternatives") or [{}]
    best = alternatives[0]
    words = [
        Word(
            text=str(item.get("word") or ""),
            start=seconds_to_ms(item.get("start")),
            end=seconds_to_ms(item.get("end")),
        )
        for item in best.get("words") or []
        if isinstance(item, dict)
    ]
    return Transcript(text=str(best.get("transcript") or ""), words=words)


class DeepgramTranscriber:
    provider_name = "deepgram"

    def __init__(
        self,
        api_key: str,
        *,
        http_client: Optional[httpx.Client] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._api_key = api_key
        self._http_client = http_client
        self.timeout_seconds = timeout_seconds

    def _post(self, *, content: Optional[bytes] = None, json_body: Optional[dict] = None, content_type: str) -> Transcript:
        headers = {"Authorization": f"Token {self._api_key}", "Content-Type": content_type}
        send = self._http_client.post if self._http_client is not None else httpx.post
        try:
            response = send(
                DEEPGRAM_LISTEN_URL,
                params=DEEPGRAM_PARAMS,
                headers=headers,
                content=content,
                json=json_body,
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise TranscriptionError(
                f"Deepgram request timed out after {int(self.timeout_seconds)} seconds."
            ) from exc
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"Failed to call Deepgram: {exc}") from exc

        if response.status_code >= 400:
            raise TranscriptionError(
                f"Deepgram error {response.status_code}: {truncate_message(response.text or 'Unknown provider error')}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError("Deepgram returned a non-JSON HTTP response.") from exc
        if not isinstance(payload, dict):
            raise TranscriptionError("Deepgram response root must be an object.")
        try:
            return parse_deepgram_response(payload)
        except (ValueError, TypeError, AttributeError, LookupError) as exc:
            raise TranscriptionError(f"Deepgram response is malformed: {truncate_message(str(exc))}") from exc

    def transcribe(self, audio_bytes: bytes, content_type: Optional[str] = None) -> Transcript:
        return self._post(content=audio_bytes, content_type=content_type or "audio/webm")

    def transcribe_url(self, audio_url: str) -> Transcript:
        return self._post(json_body={"url": audio_url}, content_type="application/json")


def build_transcriber() -> Optional[Transcriber]:
    provider = os.getenv("TRANSCRIPTION_PROVIDER", "").strip().lower()
    deepgram_key = os.getenv("DEEPGRAM_API_KEY", "").strip()

    if provider == "google" or (not provider and not deepgram_key and google_credentials_configured()):
        logger.info("transcription_provider_ready provider=google")
        return GoogleSpeechTranscriber()
    if provider in ("", "deepgram") and deepgram_key:
        logger.info("transcription_provider_ready provider=deepgram")
        return DeepgramTranscriber(deepgram_key)

    logger.info("transcription_provider_disabled provider=%s mode=mock", provider or "auto")
    return None


def transcribe_audio(
    audio_bytes: bytes,
    content_type: Optional[str],
    transcriber: Optional[Transcriber],
) -> Outcome[Transcript]:
    if transcriber is None:
        return Fallback(mock_transcript(), reason="transcription provider not configured")

    size_mb = len(audio_bytes) / (1024 * 1024)
    if len(audio_bytes) > MAX_UPLOAD_BYTES:
        logger.warning("transcription_fallback reason=audio_too_large size_mb=%.1f", size_mb)
        return Fallback(mock_transcript(), reason="audio too large")

    logger.info("transcription_started provider=%s bytes=%s", transcriber.provider_name, len(audio_bytes))
    try:
        transcript = transcriber.transcribe(audio_bytes, content_type)
    except TranscriptionError as exc:
        logger.warning("transcription_fallback provider=%s error=%s", transcriber.provider_name, exc)
        return Fallback(mock_transcript(), reason=str(exc))
    logger.info("transcription_done provider=%s words=%s", transcriber.provider_name, len(transcript.words))
    return Ok(transcript)


def transcribe_url(audio_url: str, transcriber: Optional[Transcriber]) -> Outcome[Transcript]:
    if transcriber is None:
        return Fallback(mock_transcript(), reason="transcription provider not configured")
    logger.info("transcription_started provider=%s url=%s", transcriber.provider_name, audio_url)
    try:
        transcript = transcriber.transcribe_url(audio_url)
    except TranscriptionError as exc:
        logger.warning("transcription_fallback provider=%s error=%s", transcriber.provider_name, exc)
        return Fallback(mock_transcript(), reason=str(exc))
    logger.info("transcription_done provider=%s words=%s", transcriber.provider_name, len(transcript.words))
    return Ok(transcript)
