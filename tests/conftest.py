import io
import os
import sys
from pathlib import Path

import pytest
from pypdf import PdfReader, PdfWriter

# Add the repo root to sys.path so app and pdfsplit import without install
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())

# No background cleanup thread while testing
os.environ.setdefault('ENABLE_CLEANUP', '0')


def page_width(logical_index: int) -> int:
    """Media-box width used to tell test pages apart."""
    return 100 + 10 * logical_index


def build_pdf(num_pages: int, base_rotation=None) -> bytes:
    """Create a PDF of blank pages; page i is page_width(i) points wide."""
    writer = PdfWriter()
    for i in range(num_pages):
        page = writer.add_blank_page(width=page_width(i), height=200)
        if base_rotation and i in base_rotation:
            page.rotation = base_rotation[i]
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def read_pages(data: bytes):
    """Return (width, rotation) for every page of a serialized PDF."""
    reader = PdfReader(io.BytesIO(data))
    return [(round(float(p.mediabox.width)), p.rotation % 360) for p in reader.pages]


@pytest.fixture
def five_page_pdf():
    return build_pdf(5)


@pytest.fixture
def make_pdf():
    return build_pdf
