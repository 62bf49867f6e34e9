import base64
import json
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from google.api_core.exceptions import GoogleAPICallError
from google.auth.exceptions import GoogleAuthError
from google.cloud import speech
from google.oauth2 import service_account

from .errors import TranscriptionError, truncate_message
from .models import Transcript, Word, duration_to_ms


def google_credentials_configured() -> bool:
    return any(
        os.getenv(name, "").strip()
        for name in (
            "GOOGLE_APPLICATION_CREDENTIALS_B64",
            "GOOGLE_APPLICATION_CREDENTIALS_JSON",
            "GOOGLE_APPLICATION_CREDENTIALS",
        )
    )


def load_service_account_credentials():
    credentials_b64 = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_B64", "").strip()
    credentials_json = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON", "").strip()
    credentials_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "").strip()

    if credentials_b64:
        try:
            payload = base64.b64decode(credentials_b64).decode("utf-8")
            info = json.loads(payload)
        except Exception as exc:
            raise RuntimeError(f"Invalid GOOGLE_APPLICATION_CREDENTIALS_B64: {exc}") from exc
        return service_account.Credentials.from_service_account_info(info)

    if credentials_json:
        try:
            info = json.loads(credentials_json)
        except Exception as exc:
            raise RuntimeError(f"Invalid GOOGLE_APPLICATION_CREDENTIALS_JSON: {exc}") from exc
        return service_account.Credentials.from_service_account_info(info)

    if credentials_path:
        if not Path(credentials_path).exists():
            raise RuntimeError(
                f"GOOGLE_APPLICATION_CREDENTIALS points to a missing file: {credentials_path}"
            )
        return None

    raise RuntimeError(
        "Google credentials are not configured. Set one of "
        "GOOGLE_APPLICATION_CREDENTIALS, GOOGLE_APPLICATION_CREDENTIALS_JSON, "
        "or GOOGLE_APPLICATION_CREDENTIALS_B64."
    )


def build_speech_client() -> speech.SpeechClient:
    credentials = load_service_account_credentials()
    if credentials is None:
        return speech.SpeechClient()
    return speech.SpeechClient(credentials=credentials)


def parse_speech_response(response) -> Transcript:
    full_text_parts: List[str] = []
    words: List[Word] = []

    for result in response.results:
        if not result.alternatives:
            continue
        alternative = result.alternatives[0]
        transcript = (alternative.transcript or "").strip()
        if transcript:
            full_text_parts.append(transcript)

        for word_info in list(alternative.words or []):
            words.append(
                Word(
                    text=word_info.word,
                    start=duration_to_ms(word_info.start_time),
                    end=duration_to_ms(word_info.end_time),
                )
            )

    return Transcript(text=" ".join(full_text_parts).strip(), words=words)


def convert_to_linear16(input_path: Path, wav_path: Path) -> None:
    ffmpeg_path = shutil.which("ffmpeg")
    if not ffmpeg_path:
        raise TranscriptionError(
            "ffmpeg is not installed or not on PATH. Install ffmpeg (macOS: brew install ffmpeg)."
        )

    command = [
        ffmpeg_path,
        "-y",
        "-i",
        str(input_path),
        "-ac",
        "1",
        "-ar",
        "16000",
        "-f",
        "wav",
        str(wav_path),
    ]
    ffmpeg_result = subprocess.run(command, capture_output=True, text=True)
    if ffmpeg_result.returncode != 0:
        stderr_tail = (ffmpeg_result.stderr or "").strip().splitlines()
        message = stderr_tail[-1] if stderr_tail else "Unknown ffmpeg error"
        raise TranscriptionError(f"Audio conversion failed: {message}")


class GoogleSpeechTranscriber:
    provider_name = "google"

    def __init__(self, client: Optional[speech.SpeechClient] = None, *, language_code: str = "en-US") -> None:
        self._client = client
        self.language_code = language_code

    def _speech_client(self) -> speech.SpeechClient:
        if self._client is None:
            self._client = build_speech_client()
        return self._client

    def recognize_wav(self, wav_content: bytes) -> Transcript:
        if not wav_content:
            raise TranscriptionError("Converted WAV audio is empty.")
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=16000,
            language_code=self.language_code,
            enable_automatic_punctuation=True,
            enable_word_time_offsets=True,
        )
        audio = speech.RecognitionAudio(content=wav_content)
        try:
            response = self._speech_client().recognize(config=config, audio=audio)
        except GoogleAPICallError as exc:
            raise TranscriptionError(f"Google Speech-to-Text error: {truncate_message(str(exc))}") from exc
        except GoogleAuthError as exc:
            raise TranscriptionError(f"Google credentials rejected: {truncate_message(str(exc))}") from exc
        except (RuntimeError, ValueError) as exc:
            raise TranscriptionError(str(exc)) from exc
        try:
            return parse_speech_response(response)
        except (ValueError, TypeError, AttributeError) as exc:
            raise TranscriptionError(
                f"Google Speech-to-Text response is malformed: {truncate_message(str(exc))}"
            ) from exc

    def transcribe(self, audio_bytes: bytes, content_type: Optional[str] = None) -> Transcript:
        del content_type
        temp_dir = Path(tempfile.mkdtemp(prefix="pitch_audio_"))
        try:
            input_path = temp_dir / "input.bin"
            wav_path = temp_dir / "converted.wav"
            input_path.write_bytes(audio_bytes)
            convert_to_linear16(input_path, wav_path)
            return self.recognize_wav(wav_path.read_bytes())
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    def transcribe_url(self, audio_url: str) -> Transcript:
        raise TranscriptionError("Google provider does not transcribe remote URLs; send audio data instead.")
