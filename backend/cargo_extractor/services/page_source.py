import os
from functools import partial
from typing import Callable, List, Optional, Sequence

from cargo_extractor.core.config import settings
from cargo_extractor.errors import RasterizationError
from cargo_extractor.logging_config import get_logger
from cargo_extractor.metrics import pages_rasterized_total
from cargo_extractor.schemas import PageImage, SourceFile, SourceKind
from cargo_extractor.utils.file_types import sniff_mime_type
from cargo_extractor.utils.image_converter import rasterize_pdf
from cargo_extractor.utils.temp_files import TempResourceManager

logger = get_logger(__name__)

# (pdf_path, output_dir) -> ordered page image paths
Rasterizer = Callable[[str, str], List[str]]


class PageSource:
    """
    Turns classified input files into the ordered page sequence of one document.

    Raster images pass through untouched. PDFs are rasterized into the
    request workspace and every generated file is handed to the
    TempResourceManager as soon as it exists.
    """

    def __init__(self, temp: TempResourceManager, rasterizer: Optional[Rasterizer] = None):
        self.temp = temp
        self.rasterizer = rasterizer or partial(rasterize_pdf, dpi=settings.PDF_RASTER_DPI)

    def expand(self, files: Sequence[SourceFile]) -> List[PageImage]:
        pages: List[PageImage] = []
        for source in files:
            if source.kind == SourceKind.PDF:
                pages.extend(self._expand_pdf(source, first_global_index=len(pages) + 1))
            else:
                logger.info("Detected image file", extra={"extra_fields": {"file": os.path.basename(source.path)}})
                pages.append(
                    PageImage(
                        source_file=source.path,
                        page_index_within_source=1,
                        global_page_index=len(pages) + 1,
                        mime_type=source.mime_type,
                        path=source.path,
                    )
                )
        return pages

    def _expand_pdf(self, source: SourceFile, first_global_index: int) -> List[PageImage]:
        name = os.path.basename(source.path)
        logger.info("Converting PDF to images", extra={"extra_fields": {"file": name}})
        try:
            image_paths = list(self.rasterizer(source.path, self.temp.workspace))
        except Exception as e:
            raise RasterizationError(f"Failed to convert PDF {name} to images: {str(e)}") from e

        self.temp.register_for_cleanup(*image_paths)

        if not image_paths:
            raise RasterizationError(f"PDF {name} produced no page images")

        pages = []
        for offset, image_path in enumerate(image_paths):
            with open(image_path, "rb") as f:
                mime_type = sniff_mime_type(f.read(12)) or "image/png"
            pages.append(
                PageImage(
                    source_file=source.path,
                    page_index_within_source=offset + 1,
                    global_page_index=first_global_index + offset,
                    mime_type=mime_type,
                    path=image_path,
                    is_temporary=True,
                )
            )

        pages_rasterized_total.inc(len(pages))
        logger.info(
            "Converted PDF pages to images",
            extra={"extra_fields": {"file": name, "pages": len(pages)}},
        )
        return pages
