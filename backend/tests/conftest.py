import os
import sys
from types import SimpleNamespace

import pytest

# Add the backend directory to sys.path so cargo_extractor imports without installing
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 24
PDF_BYTES = b"%PDF-1.4\n%fake\n"


class FakeRasterizer:
    """
    Stands in for pdf2image: writes one PNG per page into the request workspace.
    """

    def __init__(self, pages_per_pdf=3, fail=None):
        self.pages_per_pdf = pages_per_pdf
        self.fail = fail
        self.calls = []
        self.created = []

    def __call__(self, pdf_path, output_dir):
        self.calls.append((pdf_path, output_dir))
        if self.fail is not None:
            raise self.fail
        stem = os.path.splitext(os.path.basename(pdf_path))[0]
        paths = []
        for page in range(1, self.pages_per_pdf + 1):
            path = os.path.join(output_dir, f"{stem}-page-{page}.png")
            with open(path, "wb") as f:
                f.write(PNG_BYTES)
            paths.append(path)
        self.created.extend(paths)
        return paths


class FakeInstructorClient:
    """
    Mimics instructor's client.messages.create.

    Each queued response is either a dict (validated into the requested
    response_model) or an exception to raise.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.messages = SimpleNamespace(create=self._create)

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return kwargs["response_model"].model_validate(response)


@pytest.fixture
def make_file(tmp_path):
    def _make(name, content):
        path = tmp_path / name
        path.write_bytes(content)
        return str(path)
    return _make


@pytest.fixture
def temp_root(tmp_path):
    root = tmp_path / "temp_images"
    root.mkdir()
    return str(root)
