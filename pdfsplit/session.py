"""One editing session over one uploaded PDF.

``SplitSession`` owns the page arrangement, the sectioning mode, the skip
set and the preview cursor, and keeps them consistent with each other:
any edit that changes how the order is sectioned clears the skip set, and
the preview cursor follows its slot through inserts and deletes.
"""
import logging
import threading
import time
from typing import Callable, List, Optional, Set

from .arrangement import PageArrangement
from .pdf_utils import LoadFailure, PageRenderer, PdfCodec
from .sectioning import Section, compute_sections, export_sections

logger = logging.getLogger(__name__)

EMPTY = 'empty'
LOADED = 'loaded'
EXPORTING = 'exporting'


class SplitSession:
    def __init__(self, codec: Optional[PdfCodec] = None):
        self.codec = codec or PdfCodec()
        self.lock = threading.RLock()
        self.arrangement = PageArrangement()
        self.filename: Optional[str] = None
        self.interval: Optional[int] = None
        self.skipped: Set[int] = set()
        self.preview_slot: Optional[int] = None
        self.state = EMPTY
        self.touched = time.time()
        self._source = None
        self._renderer: Optional[PageRenderer] = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def load(self, data: bytes, filename: str = 'document.pdf') -> int:
        """Open a new source document and reset all editing state.

        On LoadFailure the session is left empty.
        """
        self.reset()
        source = self.codec.load(data)
        try:
            renderer = PageRenderer(data)
        except Exception as exc:
            raise LoadFailure(f'could not open PDF for preview: {exc}') from exc
        self._source = source
        self._renderer = renderer
        self.filename = filename
        self.arrangement.initialize(self.codec.page_count(source))
        self.state = LOADED
        self.touch()
        logger.info('loaded %s (%d pages)', filename, self.arrangement.num_pages)
        return self.arrangement.num_pages

    def reset(self):
        if self._renderer is not None:
            self._renderer.close()
        self._renderer = None
        self._source = None
        self.filename = None
        self.arrangement.initialize(0)
        self.interval = None
        self.skipped = set()
        self.preview_slot = None
        self.state = EMPTY

    def touch(self):
        self.touched = time.time()

    @property
    def loaded(self) -> bool:
        return self.state != EMPTY

    # ------------------------------------------------------------------
    # edits
    # ------------------------------------------------------------------

    def _resectioned(self):
        if self.skipped:
            logger.debug('sectioning changed, clearing %d skipped sections', len(self.skipped))
        self.skipped = set()

    def rotate(self, logical_index: int, direction: str) -> bool:
        # rotation never changes sectioning, so the skip set survives
        return self.arrangement.rotate(logical_index, direction)

    def duplicate(self, logical_index: int) -> bool:
        first = self.arrangement.first_slot_of(logical_index)
        if not self.arrangement.duplicate(logical_index):
            return False
        if self.preview_slot is not None and self.preview_slot > first:
            self.preview_slot += 1
        self._resectioned()
        return True

    def delete_slot(self, slot: int) -> bool:
        if not self.arrangement.delete_by_slot(slot):
            return False
        self._shift_preview_after_delete(slot)
        self._resectioned()
        return True

    def delete_page(self, logical_index: int) -> bool:
        """Remove every occurrence of a source page."""
        slots = [i for i, page in enumerate(self.arrangement.page_order) if page == logical_index]
        if not self.arrangement.delete_by_logical_index(logical_index):
            return False
        for slot in reversed(slots):
            self._shift_preview_after_delete(slot)
        self._resectioned()
        return True

    def _shift_preview_after_delete(self, slot: int):
        if self.preview_slot is None:
            return
        if self.preview_slot == slot:
            self.preview_slot = None
        elif self.preview_slot > slot:
            self.preview_slot -= 1

    def toggle_split(self, slot: int) -> bool:
        if not self.arrangement.toggle_split(slot):
            return False
        self._resectioned()
        return True

    def use_manual_splits(self):
        if self.interval is not None:
            self.interval = None
            self._resectioned()

    def use_interval(self, interval: int):
        if interval < 1:
            raise ValueError(f'interval must be >= 1, got {interval}')
        if self.interval != interval:
            self.interval = interval
            self._resectioned()

    def toggle_skip(self, section_index: int) -> bool:
        if not 0 <= section_index < len(self.sections()):
            logger.debug('skip toggle ignored: section %s out of range', section_index)
            return False
        if section_index in self.skipped:
            self.skipped.discard(section_index)
        else:
            self.skipped.add(section_index)
        return True

    # ------------------------------------------------------------------
    # preview cursor
    # ------------------------------------------------------------------

    def open_preview(self, slot: int) -> bool:
        if not 0 <= slot < len(self.arrangement):
            return False
        self.preview_slot = slot
        return True

    def close_preview(self):
        self.preview_slot = None

    def preview_next(self) -> bool:
        if self.preview_slot is None or self.preview_slot >= len(self.arrangement) - 1:
            return False
        self.preview_slot += 1
        return True

    def preview_prev(self) -> bool:
        if self.preview_slot is None or self.preview_slot == 0:
            return False
        self.preview_slot -= 1
        return True

    @property
    def preview_page(self) -> Optional[int]:
        if self.preview_slot is None:
            return None
        return self.arrangement.page_order[self.preview_slot]

    # ------------------------------------------------------------------
    # rendering
    # ------------------------------------------------------------------

    def render_slot(self, slot: int, height: Optional[int] = None, width: Optional[int] = None):
        if self._renderer is None:
            raise LookupError('no document loaded')
        if not 0 <= slot < len(self.arrangement):
            raise IndexError(f'slot {slot} out of range')
        page = self.arrangement.page_order[slot]
        return self._renderer.render(page, self.arrangement.rotation_for(page),
                                     height=height, width=width)

    # ------------------------------------------------------------------
    # sectioning / export
    # ------------------------------------------------------------------

    def sections(self) -> List[Section]:
        return compute_sections(self.arrangement.page_order,
                                markers=self.arrangement.split_markers,
                                interval=self.interval)

    def export(self, deliver: Callable[[str, bytes], None]) -> List[str]:
        """Write every non-skipped section through ``deliver(name, data)``.

        The arrangement is only read; on success or failure the session goes
        back to the loaded state untouched.
        """
        if self._source is None:
            raise LookupError('no document loaded')
        self.state = EXPORTING
        try:
            return export_sections(self.sections(), self.skipped,
                                   dict(self.arrangement.rotations),
                                   self.codec, self._source, deliver)
        finally:
            self.state = LOADED

    def to_dict(self) -> dict:
        data = self.arrangement.to_dict()
        data.update({
            'filename': self.filename,
            'state': self.state,
            'slot_count': len(self.arrangement),
            'mode': 'manual' if self.interval is None else 'interval',
            'interval': self.interval,
            'sections': [s.to_dict() for s in self.sections()],
            'skipped': sorted(self.skipped),
            'preview': None,
        })
        if self.preview_slot is not None:
            page = self.preview_page
            data['preview'] = {
                'slot': self.preview_slot,
                'page': page,
                'rotation': self.arrangement.rotation_for(page),
                'has_prev': self.preview_slot > 0,
                'has_next': self.preview_slot < len(self.arrangement) - 1,
            }
        return data
