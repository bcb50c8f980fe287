"""PDF helpers for the split tool.

``PdfCodec`` wraps pypdf for loading the source document, copying pages
into new documents and serializing them. ``PageRenderer`` uses PyMuPDF to
draw thumbnails and previews at the rotation the user picked.
"""
import io
import logging
import threading
from dataclasses import dataclass
from typing import Optional

import fitz  # PyMuPDF
from PIL import Image
from pypdf import PageObject, PdfReader, PdfWriter

logger = logging.getLogger(__name__)


class LoadFailure(Exception):
    """The source bytes could not be opened as a PDF."""


@dataclass
class CopiedPage:
    page: PageObject
    rotation: int = 0


def _check_pdf_bytes(data: bytes):
    if not data:
        raise LoadFailure('empty upload')
    if not data.lstrip()[:5].startswith(b'%PDF'):
        raise LoadFailure('file does not start with a %PDF header')


class PdfCodec:
    """Document codec backed by pypdf."""

    def load(self, data: bytes) -> PdfReader:
        _check_pdf_bytes(data)
        try:
            reader = PdfReader(io.BytesIO(data))
            if reader.is_encrypted:
                raise LoadFailure('encrypted PDFs are not supported')
            # touch the page tree so broken files fail here and not mid-export
            len(reader.pages)
        except LoadFailure:
            raise
        except Exception as exc:
            raise LoadFailure(f'could not read PDF: {exc}') from exc
        logger.debug('load: %d pages, %d bytes', len(reader.pages), len(data))
        return reader

    def page_count(self, source: PdfReader) -> int:
        return len(source.pages)

    def create_empty(self) -> PdfWriter:
        return PdfWriter()

    def copy_page(self, source: PdfReader, logical_index: int) -> CopiedPage:
        page = source.pages[logical_index]
        return CopiedPage(page=page, rotation=page.rotation % 360)

    def apply_rotation(self, page: CopiedPage, degrees: int):
        # clockwise, on top of the page's own /Rotate
        page.rotation = (page.rotation + degrees) % 360

    def append_page(self, target: PdfWriter, page: CopiedPage):
        added = target.add_page(page.page)
        # absolute value: the source page itself is never modified
        added.rotation = page.rotation

    def serialize(self, target: PdfWriter) -> bytes:
        buf = io.BytesIO()
        target.write(buf)
        data = buf.getvalue()
        if not data.startswith(b'%PDF'):
            raise RuntimeError('writer produced non-PDF data')
        return data


class PageRenderer:
    """Renders pages of one source document for thumbnails and previews."""

    def __init__(self, data: bytes):
        self._lock = threading.Lock()
        self._doc = fitz.open(stream=data, filetype='pdf')
        self._base_rotation = [self._doc.load_page(i).rotation for i in range(len(self._doc))]

    def render(self, page_number: int, rotation: int = 0, height: Optional[int] = None,
               width: Optional[int] = None) -> Image.Image:
        """Draw ``page_number`` (0-based) turned ``rotation`` degrees clockwise.

        The image is scaled to ``height`` or ``width`` pixels (height wins when
        both are given); with neither the page is drawn at 2x.
        """
        if not 0 <= page_number < len(self._base_rotation):
            raise IndexError(f'page {page_number} out of range')
        with self._lock:
            page = self._doc.load_page(page_number)
            page.set_rotation((self._base_rotation[page_number] + rotation) % 360)
            rect = page.rect
            if height:
                zoom = height / rect.height
            elif width:
                zoom = width / rect.width
            else:
                zoom = 2
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            return Image.frombytes('RGB', (pix.width, pix.height), pix.samples)

    def close(self):
        with self._lock:
            self._doc.close()


def image_to_jpeg(image: Image.Image, quality: int = 85) -> bytes:
    buf = io.BytesIO()
    image.convert('RGB').save(buf, 'JPEG', quality=quality)
    return buf.getvalue()
