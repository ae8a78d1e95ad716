import base64
from typing import List

from pdf2image import convert_from_path


def rasterize_pdf(pdf_path: str, output_dir: str, dpi: int = 200) -> List[str]:
    """
    Renders every page of a PDF to a PNG file inside output_dir.

    Args:
        pdf_path: Path of the PDF on disk.
        output_dir: Directory receiving the page images (the request workspace).
        dpi: Rendering resolution.

    Returns:
        List[str]: Page image paths in page order.
    """
    # paths_only returns the files poppler wrote, sorted by page number
    return convert_from_path(
        pdf_path,
        dpi=dpi,
        output_folder=output_dir,
        fmt="png",
        paths_only=True,
    )


def encode_image_file(path: str) -> str:
    """
    Reads an image file and returns its content as a base64 string.
    """
    with open(path, "rb") as f:
        return base64.b64encode(f.read()).decode("utf-8")
