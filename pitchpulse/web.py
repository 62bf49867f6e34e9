import logging
import os
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .constants import CHUNK_SIZE, MAX_REQUEST_BYTES, MAX_UPLOAD_BYTES
from .document_extractor import (
    detect_extension,
    extract_document_text,
    sanitize_filename,
    validate_document_extension,
)
from .errors import DocumentExtractionError, InputError, StorageFullError
from .llm_client import GenerationClient, build_generation_client
from .models import (
    AnalyzeRequest,
    ClearResponse,
    DeleteResponse,
    HealthResponse,
    HistoryItem,
    ParsedDocumentResponse,
    PitchResult,
    SaveHistoryRequest,
    Suggestion,
    SuggestRequest,
    TranscribeRequest,
    TranscribeResponse,
    VoiceAnalysis,
    VoiceAnalyzeRequest,
)
from .outcomes import Ok, unwrap
from .pitch_analysis import analyze_pitch, generate_suggestions
from .storage import HistoryStore, build_history_item, build_history_store
from .throttle import Throttle, build_throttle
from .transcription import Transcriber, build_transcriber, decode_audio_data, transcribe_audio, transcribe_url
from .voice_metrics import analyze_voice


logger = logging.getLogger("uvicorn.error")

SIZE_LIMITED_PATHS = ("/api/transcribe", "/api/parse-document")


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.generation_client = build_generation_client()
    app.state.transcriber = build_transcriber()
    app.state.history_store = build_history_store()
    logger.info(
        "app_started storage=%s generation=%s transcription=%s",
        app.state.history_store.storage_name,
        "model" if app.state.generation_client is not None else "heuristic",
        getattr(app.state.transcriber, "provider_name", "mock"),
    )
    yield


app = FastAPI(title="Pitch Pulse Backend", lifespan=lifespan)

frontend_origins = os.getenv(
    "FRONTEND_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in frontend_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def enforce_upload_size(request, call_next):
    if request.method == "POST" and request.url.path.startswith(SIZE_LIMITED_PATHS):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > MAX_REQUEST_BYTES:
                    return JSONResponse(
                        status_code=413,
                        content={"detail": f"Request too large. Max size is {MAX_REQUEST_BYTES} bytes."},
                    )
            except ValueError:
                pass
    return await call_next(request)


# Injectables. Tests replace these through app.dependency_overrides.


def get_generation_client(request: Request) -> Optional[GenerationClient]:
    return getattr(request.app.state, "generation_client", None)


def get_transcriber(request: Request) -> Optional[Transcriber]:
    return getattr(request.app.state, "transcriber", None)


def get_history_store(request: Request) -> HistoryStore:
    store = getattr(request.app.state, "history_store", None)
    if store is None:
        store = build_history_store()
        request.app.state.history_store = store
    return store


def get_throttle() -> Throttle:
    # One throttle per request so the first call of every request goes out immediately.
    return build_throttle()


async def write_upload_to_disk(
    upload: UploadFile,
    destination: Path,
    *,
    field_name: str,
    max_size_bytes: int = MAX_UPLOAD_BYTES,
) -> int:
    total_bytes = 0
    destination.parent.mkdir(parents=True, exist_ok=True)

    with destination.open("wb") as output:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            total_bytes += len(chunk)
            if total_bytes > max_size_bytes:
                raise HTTPException(
                    status_code=413,
                    detail=f"{field_name} is too large. Max size is {max_size_bytes} bytes.",
                )
            output.write(chunk)

    await upload.close()
    if total_bytes == 0:
        raise HTTPException(status_code=400, detail=f"{field_name} file is empty.")
    return total_bytes


@app.get("/health", response_model=HealthResponse)
def health(
    generation_client: Optional[GenerationClient] = Depends(get_generation_client),
    transcriber: Optional[Transcriber] = Depends(get_transcriber),
    history_store: HistoryStore = Depends(get_history_store),
) -> HealthResponse:
    return HealthResponse(
        status="ok",
        storage=history_store.storage_name,
        generation="model" if generation_client is not None else "heuristic",
        transcription=transcriber.provider_name if transcriber is not None else "mock",
    )


@app.post("/api/transcribe", response_model=TranscribeResponse)
def transcribe(
    body: TranscribeRequest,
    transcriber: Optional[Transcriber] = Depends(get_transcriber),
) -> TranscribeResponse:
    if body.audio_url:
        outcome = transcribe_url(body.audio_url, transcriber)
    elif body.audio_data:
        try:
            audio_bytes = decode_audio_data(body.audio_data)
        except InputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        outcome = transcribe_audio(audio_bytes, body.file_type, transcriber)
    else:
        raise HTTPException(status_code=400, detail="No audio data provided.")

    transcript = unwrap(outcome)
    source = transcriber.provider_name if isinstance(outcome, Ok) and transcriber is not None else "mock"
    return TranscribeResponse(text=transcript.text, words=transcript.words, source=source)


@app.post("/api/parse-document", response_model=ParsedDocumentResponse)
async def parse_document(file: Optional[UploadFile] = File(None)) -> ParsedDocumentResponse:
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided.")

    raw_name = file.filename or "document"
    extension = detect_extension(raw_name)
    try:
        validate_document_extension(extension)
    except DocumentExtractionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    temp_dir = Path(tempfile.mkdtemp(prefix="pitch_document_"))
    try:
        document_path = temp_dir / sanitize_filename(raw_name)
        size_bytes = await write_upload_to_disk(file, document_path, field_name="file")
        text = extract_document_text(document_path)
    except DocumentExtractionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.error("document_parse_failed filename=%s", raw_name, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to parse document. Please paste your pitch text directly.",
        ) from exc
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    logger.info("document_parsed extension=%s bytes=%s chars=%s", extension, size_bytes, len(text))
    return ParsedDocumentResponse(text=text)


@app.post("/api/analyze", response_model=PitchResult)
def analyze(
    body: AnalyzeRequest,
    generation_client: Optional[GenerationClient] = Depends(get_generation_client),
    throttle: Throttle = Depends(get_throttle),
) -> PitchResult:
    try:
        return analyze_pitch(body.transcript, body.persona, client=generation_client, throttle=throttle)
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.error("pitch_analysis_failed persona=%s", body.persona, exc_info=True)
        raise HTTPException(status_code=500, detail="Analysis failed.") from exc


@app.post("/api/suggest", response_model=List[Suggestion])
def suggest(
    body: SuggestRequest,
    generation_client: Optional[GenerationClient] = Depends(get_generation_client),
    throttle: Throttle = Depends(get_throttle),
) -> List[Suggestion]:
    try:
        return generate_suggestions(body.weak_segments, body.persona, client=generation_client, throttle=throttle)
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.error("suggestions_failed persona=%s", body.persona, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate suggestions.") from exc


@app.post("/api/voice-analyze", response_model=VoiceAnalysis)
def voice_analyze(body: VoiceAnalyzeRequest) -> VoiceAnalysis:
    try:
        return analyze_voice(body.words or [])
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/history", response_model=List[HistoryItem])
def list_history(history_store: HistoryStore = Depends(get_history_store)) -> List[HistoryItem]:
    return history_store.list_items()


@app.post("/api/history", response_model=HistoryItem)
def save_history(
    body: SaveHistoryRequest,
    history_store: HistoryStore = Depends(get_history_store),
) -> HistoryItem:
    item = build_history_item(body)
    try:
        history_store.save_item(item)
    except StorageFullError as exc:
        logger.error("history_save_failed id=%s error=%s", item.id, exc)
        raise HTTPException(status_code=507, detail="History storage is full.") from exc
    logger.info("history_saved id=%s persona=%s overall=%.3f", item.id, item.persona, item.overall_score)
    return item


@app.get("/api/history/{item_id}", response_model=HistoryItem)
def get_history_item(item_id: str, history_store: HistoryStore = Depends(get_history_store)) -> HistoryItem:
    item = history_store.get_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Pitch not found.")
    return item


@app.delete("/api/history/{item_id}", response_model=DeleteResponse)
def delete_history_item(item_id: str, history_store: HistoryStore = Depends(get_history_store)) -> DeleteResponse:
    return DeleteResponse(deleted=history_store.delete_item(item_id))


@app.delete("/api/history", response_model=ClearResponse)
def clear_history(history_store: HistoryStore = Depends(get_history_store)) -> ClearResponse:
    return ClearResponse(cleared=history_store.clear())
