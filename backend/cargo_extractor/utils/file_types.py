import os
from typing import Optional

from cargo_extractor.errors import InvalidConfigurationError
from cargo_extractor.logging_config import get_logger
from cargo_extractor.schemas import SourceFile, SourceKind

logger = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"

# Formats the vision model accepts
EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def sniff_mime_type(header: bytes) -> Optional[str]:
    """
    Detects the file type from its leading bytes.

    Returns:
        The MIME type for PDF, PNG, JPEG, GIF or WEBP content, None otherwise.
    """
    if header.startswith(b"%PDF"):
        return PDF_MIME_TYPE
    if header.startswith(b"\x89PNG"):
        return "image/png"
    if header.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if header.startswith(b"GIF8"):
        return "image/gif"
    if header[:4] == b"RIFF" and header[8:12] == b"WEBP":
        return "image/webp"
    return None


def classify_source(path: str) -> SourceFile:
    """
    Classifies an input file as a PDF or a raster image by its magic bytes.

    The extension is only consulted when the signature is not recognized.

    Raises:
        InvalidConfigurationError: neither the signature nor the extension is supported.
    """
    with open(path, "rb") as f:
        header = f.read(12)

    ext = os.path.splitext(path)[1].lower()
    detected = sniff_mime_type(header)

    if detected == PDF_MIME_TYPE:
        return SourceFile(path=path, kind=SourceKind.PDF, mime_type=detected)

    if detected is not None:
        expected = EXTENSION_MIME_TYPES.get(ext)
        if ext and expected != detected:
            logger.warning(
                "File extension does not match its content",
                extra={"extra_fields": {"file": os.path.basename(path), "extension": ext, "detected": detected}},
            )
        return SourceFile(path=path, kind=SourceKind.RASTER_IMAGE, mime_type=detected)

    fallback = EXTENSION_MIME_TYPES.get(ext)
    if fallback is None:
        raise InvalidConfigurationError(f"Unrecognized file type: {os.path.basename(path)}")

    logger.warning(
        "Could not detect image type from signature, using extension",
        extra={"extra_fields": {"file": os.path.basename(path), "extension": ext, "mime_type": fallback}},
    )
    return SourceFile(path=path, kind=SourceKind.RASTER_IMAGE, mime_type=fallback)
