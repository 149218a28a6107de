"""FastAPI application exposing sessions and one-shot sheet extraction."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional, Tuple
from urllib.parse import quote

from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import UploadFile

from . import __version__
from .config import Config
from .exceptions import (
    ConfigurationError,
    DocumentError,
    InvalidPageRangeError,
    StoreUnavailable,
)
from .export import CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE, download_name, to_csv, to_xlsx
from .modes import get_mode
from .processor import DocumentProcessor
from .providers import InferenceProvider, ProviderFactory
from .renderers import PDFRenderer, Renderer
from .sheets import SheetFile, batch_key, session_key
from .store import SessionStore, create_store
from .utils import new_id, setup_logging

logger = logging.getLogger(__name__)

RendererFactory = Callable[[bytes], Renderer]

router = APIRouter()


class RequestError(Exception):
    """Rejected request; rendered as ``{"error": message}``."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _processor(request: Request) -> DocumentProcessor:
    return request.app.state.processor


def _attachment(content, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{quote(filename)}"'},
    )


async def _read_pdf_upload(request: Request) -> Tuple[str, bytes]:
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type:
        raise RequestError(415, "Unsupported Media Type")

    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise RequestError(400, "No file uploaded")

    data = await upload.read()
    if not data:
        raise RequestError(400, "Uploaded file is empty")
    return upload.filename or "document.pdf", data


def _renderer(request: Request, data: bytes) -> Renderer:
    try:
        return request.app.state.renderer_factory(data)
    except DocumentError as e:
        raise RequestError(400, str(e))


def _mode(name: str):
    try:
        return get_mode(name)
    except ConfigurationError as e:
        raise RequestError(400, str(e))


def _job_failed(exc: Exception, **extra) -> JSONResponse:
    content = {"error": "An error occurred", "details": str(exc)}
    content.update(extra)
    return JSONResponse(status_code=500, content=content)


@router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@router.get("/sessions")
async def create_session(request: Request):
    session_id = new_id()
    await _processor(request).progress.start_session(session_id)
    logger.info(f"Created session {session_id}")
    return {"sessionId": session_id}


@router.post("/sessions/{session_id}")
async def run_session(
    session_id: str,
    request: Request,
    start_page: int = Query(1, alias="startPage"),
    end_page: int = Query(1, alias="endPage"),
    mode: str = Query("names"),
):
    """Run extraction over a page range of the uploaded PDF.

    The sheet is persisted even when the job fails, and its URL is returned
    alongside the error.
    """
    filename, data = await _read_pdf_upload(request)
    extraction_mode = _mode(mode)
    renderer = _renderer(request, data)
    sheet_url = str(request.url_for("download_session_sheet", session_id=session_id))

    logger.info(
        f"Session {session_id}: {filename} pages {start_page}-{end_page} "
        f"({extraction_mode.name})"
    )
    try:
        await _processor(request).process_range(
            session_id, renderer, filename, start_page, end_page, extraction_mode
        )
    except InvalidPageRangeError as e:
        raise RequestError(400, str(e))
    except StoreUnavailable:
        raise
    except Exception as e:
        logger.error(f"Session {session_id} failed: {e}")
        return _job_failed(e, sheetUrl=sheet_url)

    return {"sheetUrl": sheet_url}


@router.get("/sessions/{session_id}/progress")
async def get_session_progress(session_id: str, request: Request):
    record = await _processor(request).progress.get_progress(session_id)
    if record is None:
        raise RequestError(404, "Session not found")
    return JSONResponse(content=record.to_dict())


@router.get("/sessions/{session_id}")
async def download_session_sheet(
    session_id: str, request: Request, fmt: str = Query("xlsx", alias="format")
):
    sheet_file = await _processor(request).assembler.load(session_key(session_id))
    if sheet_file is None:
        raise RequestError(404, "Sheet not found")
    return _encode(sheet_file, fmt)


@router.post("/sheetify")
async def create_sheet(
    request: Request,
    start_page: Optional[int] = Query(None, alias="startPage"),
    end_page: Optional[int] = Query(None, alias="endPage"),
    mode: str = Query("lines"),
):
    """Extract a whole document (or range) in one request; kept for 24 hours."""
    filename, data = await _read_pdf_upload(request)
    extraction_mode = _mode(mode)
    renderer = _renderer(request, data)

    try:
        sheet_id, sheet_file = await _processor(request).sheetify(
            renderer, filename, extraction_mode, start_page, end_page
        )
    except InvalidPageRangeError as e:
        raise RequestError(400, str(e))
    except StoreUnavailable:
        raise
    except Exception as e:
        logger.error(f"Sheet extraction for {filename} failed: {e}")
        return _job_failed(e)

    sheet_url = str(request.url_for("download_sheet", sheet_id=sheet_id))
    return {"sheetId": sheet_id, "sheetUrl": sheet_url, "rows": len(sheet_file.sheet)}


@router.get("/sheetify/{sheet_id}")
async def download_sheet(sheet_id: str, request: Request):
    sheet_file = await _processor(request).assembler.load(batch_key(sheet_id))
    if sheet_file is None:
        raise RequestError(404, "Sheet not found")
    return _encode(sheet_file, "csv")


@router.post("/convert-to-markdown")
async def convert_to_markdown(
    request: Request,
    start_page: Optional[int] = Query(None, alias="startPage"),
    end_page: Optional[int] = Query(None, alias="endPage"),
):
    """Transcribe each page of the uploaded PDF to markdown."""
    filename, data = await _read_pdf_upload(request)
    renderer = _renderer(request, data)

    try:
        markdown = await _processor(request).to_markdown(renderer, start_page, end_page)
    except InvalidPageRangeError as e:
        raise RequestError(400, str(e))
    except StoreUnavailable:
        raise
    except Exception as e:
        logger.error(f"Markdown conversion for {filename} failed: {e}")
        return _job_failed(e)

    return {"markdown": markdown}


def _encode(sheet_file: SheetFile, fmt: str) -> Response:
    if fmt == "csv":
        return _attachment(
            to_csv(sheet_file),
            CSV_MEDIA_TYPE,
            download_name(sheet_file.filename, ".csv"),
        )
    if fmt == "xlsx":
        return _attachment(
            to_xlsx(sheet_file),
            XLSX_MEDIA_TYPE,
            download_name(sheet_file.filename, ".xlsx"),
        )
    raise RequestError(400, f"Unsupported format: {fmt}")


async def request_error_handler(request: Request, exc: RequestError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
        for error in errors
    )
    return JSONResponse(status_code=400, content={"error": message or "Invalid request"})


async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"Session store unavailable: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Session store unavailable", "details": str(exc)},
    )


def create_app(
    config: Optional[Config] = None,
    provider: Optional[InferenceProvider] = None,
    store: Optional[SessionStore] = None,
    renderer_factory: Optional[RendererFactory] = None,
) -> FastAPI:
    """Build the application.

    Collaborators that are not passed in are created at startup from the
    environment and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config is None:
            load_dotenv()
        cfg = config or Config.from_env()
        setup_logging(cfg.verbose)

        app.state.config = cfg
        app.state.provider = provider or ProviderFactory.from_config(cfg)
        app.state.store = store or create_store(cfg)
        app.state.renderer_factory = renderer_factory or (
            lambda data: PDFRenderer(data, scale=cfg.render_scale)
        )
        app.state.processor = DocumentProcessor(
            cfg, app.state.provider, app.state.store
        )
        try:
            yield
        finally:
            if store is None:
                await app.state.store.close()
            if provider is None:
                app.state.provider.close()

    app = FastAPI(
        title="sheetify",
        description="Extract script and glossary tables from PDF pages",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestError, request_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)
    app.include_router(router)
    return app


app = create_app()
