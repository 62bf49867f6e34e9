"""HTTP-level tests for pitchpulse.web."""

from __future__ import annotations

import base64
import io
from typing import Iterator

import pytest
from docx import Document
from fastapi.testclient import TestClient

from conftest import FakeGenerationClient, RecordingThrottle, evenly_spaced_words

from pitchpulse.errors import TranscriptionError
from pitchpulse.models import Transcript, Word
from pitchpulse.storage import InMemoryHistoryStore
from pitchpulse.transcription import mock_transcript
from pitchpulse.web import app, get_generation_client, get_history_store, get_throttle, get_transcriber


class FakeTranscriber:
    provider_name = "deepgram"

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    def transcribe(self, audio_bytes: bytes, content_type=None) -> Transcript:
        if self.error:
            raise self.error
        return Transcript(text="hi there", words=[Word(text="hi", start=0, end=200), Word(text="there", start=300, end=600)])

    def transcribe_url(self, audio_url: str) -> Transcript:
        return self.transcribe(b"")


class Injectables:
    def __init__(self) -> None:
        self.generation_client = None
        self.transcriber = None
        self.history_store = InMemoryHistoryStore()
        self.throttle = RecordingThrottle()


@pytest.fixture
def injectables() -> Injectables:
    return Injectables()


@pytest.fixture
def client(injectables: Injectables) -> Iterator[TestClient]:
    app.dependency_overrides[get_generation_client] = lambda: injectables.generation_client
    app.dependency_overrides[get_transcriber] = lambda: injectables.transcriber
    app.dependency_overrides[get_history_store] = lambda: injectables.history_store
    app.dependency_overrides[get_throttle] = lambda: injectables.throttle
    yield TestClient(app)
    app.dependency_overrides.clear()


def _words_payload(count: int = 150, spacing_ms: int = 333):
    return [word.model_dump(by_alias=True) for word in evenly_spaced_words(count, spacing_ms=spacing_ms)]


def _analysis_payload(client: TestClient, persona: str = "vc") -> dict:
    words = _words_payload()
    response = client.post(
        "/api/analyze",
        json={"transcript": {"text": " ".join(word["text"] for word in words), "words": words}, "persona": persona},
    )
    assert response.status_code == 200
    return response.json()


class TestHealth:
    def test_reports_modes(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "storage": "memory",
            "generation": "heuristic",
            "transcription": "mock",
        }

    def test_reports_configured_providers(self, client: TestClient, injectables: Injectables) -> None:
        injectables.generation_client = FakeGenerationClient(["{}"])
        injectables.transcriber = FakeTranscriber()
        body = client.get("/health").json()
        assert body["generation"] == "model"
        assert body["transcription"] == "deepgram"


class TestTranscribeRoute:
    def test_missing_audio(self, client: TestClient) -> None:
        response = client.post("/api/transcribe", json={})
        assert response.status_code == 400

    def test_mock_without_provider(self, client: TestClient) -> None:
        response = client.post("/api/transcribe", json={"audioData": base64.b64encode(b"audio").decode()})
        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "mock"
        assert body["text"] == mock_transcript().text
        assert len(body["words"]) == len(mock_transcript().words)

    def test_provider_transcript(self, client: TestClient, injectables: Injectables) -> None:
        injectables.transcriber = FakeTranscriber()
        response = client.post(
            "/api/transcribe",
            json={"audioData": "data:audio/webm;base64," + base64.b64encode(b"audio").decode(), "fileType": "audio/webm"},
        )
        body = response.json()
        assert body["source"] == "deepgram"
        assert body["words"][1] == {"text": "there", "start": 300, "end": 600}

    def test_provider_failure_falls_back_to_mock(self, client: TestClient, injectables: Injectables) -> None:
        injectables.transcriber = FakeTranscriber(error=TranscriptionError("Deepgram error 500"))
        response = client.post("/api/transcribe", json={"audioUrl": "https://example.com/pitch.mp3"})
        assert response.status_code == 200
        assert response.json()["source"] == "mock"

    def test_invalid_base64(self, client: TestClient) -> None:
        assert client.post("/api/transcribe", json={"audioData": "abc"}).status_code == 400

    def test_oversize_request_refused(self, client: TestClient) -> None:
        response = client.post(
            "/api/transcribe",
            content=b"{}",
            headers={"content-type": "application/json", "content-length": str(65 * 1024 * 1024)},
        )
        assert response.status_code == 413


class TestParseDocumentRoute:
    def test_txt(self, client: TestClient) -> None:
        response = client.post(
            "/api/parse-document",
            files={"file": ("pitch.txt", b"We help founders rehearse their pitch.", "text/plain")},
        )
        assert response.status_code == 200
        assert response.json() == {"text": "We help founders rehearse their pitch."}

    def test_docx(self, client: TestClient) -> None:
        buffer = io.BytesIO()
        document = Document()
        document.add_paragraph("Our traction doubled this quarter.")
        document.save(buffer)
        response = client.post(
            "/api/parse-document",
            files={"file": ("pitch.docx", buffer.getvalue(), "application/octet-stream")},
        )
        assert response.json()["text"] == "Our traction doubled this quarter."

    def test_legacy_format(self, client: TestClient) -> None:
        response = client.post("/api/parse-document", files={"file": ("pitch.doc", b"binary", "application/msword")})
        assert response.status_code == 400
        assert "convert" in response.json()["detail"]

    def test_too_short(self, client: TestClient) -> None:
        response = client.post("/api/parse-document", files={"file": ("pitch.txt", b"hi", "text/plain")})
        assert response.status_code == 400

    def test_missing_file(self, client: TestClient) -> None:
        assert client.post("/api/parse-document").status_code == 400


class TestAnalyzeRoute:
    def test_heuristic_result_shape(self, client: TestClient, injectables: Injectables) -> None:
        body = _analysis_payload(client)
        assert body["persona"] == "vc"
        assert len(body["segments"]) == 3
        segment = body["segments"][0]
        assert {"index", "start", "end", "text", "personaFit", "engagementScore", "weakMoment", "source"} <= set(segment)
        assert "words" not in segment
        mean = sum(item["engagementScore"] for item in body["segments"]) / 3
        assert body["overallScore"] == pytest.approx(mean)
        assert injectables.throttle.waits == 0

    def test_model_mode(self, client: TestClient, injectables: Injectables, model_scores_json: str) -> None:
        injectables.generation_client = FakeGenerationClient([model_scores_json])
        body = _analysis_payload(client)
        assert [segment["source"] for segment in body["segments"]] == ["model"] * 3
        assert injectables.throttle.waits == 3

    def test_missing_transcript(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={"persona": "vc"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing transcript."

    def test_unknown_persona(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={"transcript": {"text": "Hello there"}, "persona": "seed"})
        assert response.status_code == 400

    def test_fatal_failure_is_500(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        def broken(*args, **kwargs):
            raise RuntimeError("heuristic exploded")

        monkeypatch.setattr("pitchpulse.scoring.heuristic_scores", broken)
        response = client.post("/api/analyze", json={"transcript": {"text": "Hello there"}, "persona": "vc"})
        assert response.status_code == 500
        assert response.json()["detail"] == "Analysis failed."


class TestSuggestRoute:
    def test_suggestions_for_weak_segments(self, client: TestClient) -> None:
        weak = [
            {"index": 2, "start": 40000, "end": 60000, "text": "We grew revenue fast", "reason": "needs metrics"},
            {"index": 5, "text": "asdf1 !!@@ xx"},
        ]
        response = client.post("/api/suggest", json={"weakSegments": weak, "persona": "vc"})
        assert response.status_code == 200
        body = response.json()
        assert [item["segmentIndex"] for item in body] == [2, 5]
        assert {"rewrite", "slideTip", "coachingTip", "source"} <= set(body[0])

    def test_missing_weak_segments(self, client: TestClient) -> None:
        assert client.post("/api/suggest", json={"persona": "vc"}).status_code == 400


class TestVoiceAnalyzeRoute:
    def test_analysis(self, client: TestClient) -> None:
        response = client.post("/api/voice-analyze", json={"words": _words_payload(40, 250)})
        assert response.status_code == 200
        body = response.json()
        assert body["overallRhythm"] == "too fast"
        assert body["issues"][0]["type"] == "rhythm"

    def test_empty_words(self, client: TestClient) -> None:
        response = client.post("/api/voice-analyze", json={"words": []})
        assert response.status_code == 400
        assert response.json()["detail"] == "Words array required."


class TestHistoryRoutes:
    def _save(self, client: TestClient) -> dict:
        analysis = _analysis_payload(client)
        response = client.post(
            "/api/history",
            json={
                "transcript": {"text": "Hello investors. We build tools."},
                "analysis": analysis,
                "persona": "vc",
            },
        )
        assert response.status_code == 200
        return response.json()

    def test_save_and_fetch(self, client: TestClient) -> None:
        saved = self._save(client)
        assert saved["title"] == "Hello investors"
        assert saved["id"].startswith("pitch-")
        assert {"overallScore", "weakMomentsCount", "transcriptPreview", "serializedResult"} <= set(saved)

        assert client.get(f"/api/history/{saved['id']}").json() == saved
        assert [item["id"] for item in client.get("/api/history").json()] == [saved["id"]]

    def test_missing_item(self, client: TestClient) -> None:
        assert client.get("/api/history/pitch-0-missing").status_code == 404

    def test_delete_and_clear(self, client: TestClient) -> None:
        first = self._save(client)
        self._save(client)
        assert client.delete(f"/api/history/{first['id']}").json() == {"deleted": True}
        assert client.delete(f"/api/history/{first['id']}").json() == {"deleted": False}
        assert client.delete("/api/history").json() == {"cleared": 1}
        assert client.get("/api/history").json() == []
