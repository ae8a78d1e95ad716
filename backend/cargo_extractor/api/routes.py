from fastapi import APIRouter, Depends, UploadFile, File
from fastapi.concurrency import run_in_threadpool
from functools import partial
from typing import List
import os
import secrets
import time

from cargo_extractor.core.config import settings
from cargo_extractor.errors import InvalidConfigurationError
from cargo_extractor.logging_config import get_logger
from cargo_extractor.metrics import file_upload_bytes
from cargo_extractor.schemas import ExtractRequest, ExtractResponse, UploadedFile, UploadResponse
from cargo_extractor.services.extractor import ExtractionClient
from cargo_extractor.services.pipeline import run_extraction
from cargo_extractor.utils.image_converter import rasterize_pdf

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


def get_extraction_client() -> ExtractionClient:
    return ExtractionClient()


def get_rasterizer():
    return partial(rasterize_pdf, dpi=settings.PDF_RASTER_DPI)


def resolve_upload_paths(names: List[str]) -> List[str]:
    """
    Maps client-supplied file names onto the upload directory.

    Only the base name is kept, so a request can never point outside UPLOAD_DIR.
    """
    return [os.path.join(settings.UPLOAD_DIR, os.path.basename(name)) for name in names]


def _format_limit(limit: int) -> str:
    if limit >= 1024 * 1024:
        return f"{limit // (1024 * 1024)}MB"
    if limit >= 1024:
        return f"{limit // 1024}KB"
    return f"{limit} bytes"


@router.post("/upload", response_model=UploadResponse)
async def upload_files(files: List[UploadFile] = File(...)):
    """
    Stores uploaded PDF / image files for a later /api/extract call.

    Every file is validated before anything is written, and a failed write
    removes the files already stored by the same request.
    """
    if not files:
        raise InvalidConfigurationError("No files uploaded")
    if len(files) > settings.MAX_UPLOAD_FILES:
        raise InvalidConfigurationError(f"Too many files. Maximum {settings.MAX_UPLOAD_FILES} files allowed.")

    for file in files:
        ext = os.path.splitext(file.filename or "")[1].lower()
        if ext not in settings.ALLOWED_UPLOAD_EXTENSIONS:
            raise InvalidConfigurationError(
                f"Invalid file type: {file.filename}. Only PDF, PNG, JPG, JPEG, GIF, and WEBP files are allowed."
            )

    contents = []
    for file in files:
        # Never read more than one byte past the limit
        content = await file.read(settings.MAX_UPLOAD_BYTES + 1)
        if len(content) > settings.MAX_UPLOAD_BYTES:
            raise InvalidConfigurationError(
                f"File too large: {file.filename}. Maximum size is {_format_limit(settings.MAX_UPLOAD_BYTES)} per file."
            )
        contents.append(content)

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)

    stored = []
    try:
        for file, content in zip(files, contents):
            stem, ext = os.path.splitext(os.path.basename(file.filename))
            filename = f"{stem}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"
            file_path = os.path.join(settings.UPLOAD_DIR, filename)
            with open(file_path, "wb") as f:
                # Tracked as soon as it exists so a failed write is rolled back too
                stored.append(
                    UploadedFile(filename=filename, originalname=file.filename, path=file_path, size=len(content))
                )
                f.write(content)
    except OSError:
        logger.error(
            "Upload write failed, removing partial upload",
            extra={"extra_fields": {"files": [f.filename for f in stored]}},
        )
        for partial_file in stored:
            try:
                os.remove(partial_file.path)
            except FileNotFoundError:
                pass
        raise

    file_upload_bytes.inc(sum(f.size for f in stored))

    logger.info(
        f"{len(stored)} file(s) uploaded",
        extra={"extra_fields": {"files": [f.filename for f in stored], "bytes": sum(f.size for f in stored)}},
    )
    return UploadResponse(files=stored, count=len(stored))


@router.post("/extract", response_model=ExtractResponse)
async def extract_documents(
    request: ExtractRequest,
    client: ExtractionClient = Depends(get_extraction_client),
    rasterizer=Depends(get_rasterizer),
):
    """
    Extracts one merged record from previously uploaded files, in the order given.
    """
    if request.file_paths:
        names = request.file_paths
    elif request.file_path:
        names = [request.file_path]
    else:
        raise InvalidConfigurationError("No files provided. Pass filePaths or filePath.")

    outcome = await run_in_threadpool(
        run_extraction,
        resolve_upload_paths(names),
        batch_size=request.batch_size,
        document_type=request.document_type,
        extraction_client=client,
        rasterizer=rasterizer,
    )

    return ExtractResponse(
        data=outcome.data,
        files_processed=outcome.files_processed,
        document_type=outcome.document_type,
        pages_processed=outcome.pages_processed,
        batches_processed=outcome.batches_processed,
    )
