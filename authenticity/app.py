import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .config import Settings, configure_logging
from .detector import InvalidImageError, analyze_image
from .schemas import AnalysisCreate, AnalysisRecord, AnalysisResponse
from .storage import AnalysisStorage, storage_from_path

logger = logging.getLogger(__name__)


class UploadRejected(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _parse_limit(raw: str | None, default: int, maximum: int) -> int:
    try:
        limit = int(raw) if raw is not None else 0
    except ValueError:
        limit = 0
    if limit <= 0:
        limit = default
    return min(limit, maximum)


def _record_json(record: AnalysisRecord) -> Any:
    return record.model_dump(mode="json", by_alias=True)


def create_app(settings: Settings | None = None, storage: AnalysisStorage | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    storage = storage if storage is not None else storage_from_path(settings.db_path)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        storage.close()

    app = FastAPI(title="AI vs Real Image Detector", lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(UploadRejected)
    async def _upload_rejected(request: Request, exc: UploadRejected) -> JSONResponse:
        logger.warning("Rejected upload to %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/analyze", response_model=AnalysisResponse)
    async def analyze(image: UploadFile | None = File(None)) -> Any:
        if image is None:
            raise UploadRejected(400, "No image file provided")

        start = time.perf_counter()
        if image.content_type not in settings.allowed_content_types:
            raise UploadRejected(400, "Invalid file type. Only JPG, JPEG, PNG, and WebP are allowed.")

        # one byte past the cap is enough to detect an oversized upload
        content = await image.read(settings.max_upload_bytes + 1)
        if len(content) > settings.max_upload_bytes:
            raise UploadRejected(413, f"File too large. Maximum size is {settings.max_upload_mb}MB.")
        if not content:
            raise UploadRejected(400, "No image file provided")

        try:
            analysis = await run_in_threadpool(analyze_image, content, settings.thresholds)
        except InvalidImageError as e:
            raise UploadRejected(400, str(e)) from e
        except Exception as e:
            logger.exception("Analysis failed for %s", image.filename)
            return JSONResponse(status_code=500, content={"message": str(e) or "Failed to analyze image"})

        try:
            record = storage.create_image_analysis(
                AnalysisCreate(
                    filename=image.filename or "upload",
                    original_size=len(content),
                    dimensions=analysis.dimensions,
                    classification=analysis.result.classification,
                    confidence=analysis.result.confidence,
                    processing_time=round(time.perf_counter() - start, 3),
                    indicators=list(analysis.result.indicators),
                )
            )
        except Exception as e:
            logger.exception("Failed to store analysis for %s", image.filename)
            return JSONResponse(status_code=500, content={"message": str(e) or "Failed to analyze image"})

        logger.info("Stored analysis %s for %s", record.id, record.filename)
        result = AnalysisResponse.from_record(record)
        return JSONResponse(content=result.model_dump(by_alias=True))

    @app.get("/api/analysis/{analysis_id}")
    def get_analysis(analysis_id: str) -> Any:
        try:
            record = storage.get_image_analysis(analysis_id)
        except Exception:
            logger.exception("Failed to retrieve analysis %s", analysis_id)
            return JSONResponse(status_code=500, content={"message": "Failed to retrieve analysis"})
        if record is None:
            return JSONResponse(status_code=404, content={"message": "Analysis not found"})
        return JSONResponse(content=_record_json(record))

    @app.get("/api/analyses")
    def list_analyses(limit: str | None = None) -> Any:
        n = _parse_limit(limit, settings.recent_limit, settings.max_recent_limit)
        try:
            records = storage.get_recent_analyses(n)
        except Exception:
            logger.exception("Failed to list analyses")
            return JSONResponse(status_code=500, content={"message": "Failed to retrieve analyses"})
        return JSONResponse(content=[_record_json(r) for r in records])

    return app


app = create_app()
