"""Page arrangement and splitting core for the PDF splitter service.

Modules:
- ``arrangement``: page order, per-page rotation and split markers
- ``sectioning``: derives export sections and drives the codec
- ``pdf_utils``: pypdf codec and PyMuPDF page renderer
- ``session``/``session_store``: per-upload editing state
"""

__all__ = ["arrangement", "sectioning", "pdf_utils", "session", "session_store"]
