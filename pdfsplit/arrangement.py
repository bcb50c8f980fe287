"""Page arrangement model for the split tool.

Tracks the ordered list of page references (slots), the per-page rotation
table and the split markers. Markers are slot positions: a marker at ``p``
puts a document boundary between slot ``p`` and slot ``p + 1``.
"""
import logging
from typing import Dict, List, Set

logger = logging.getLogger(__name__)

ROTATION_STEP = {'left': -90, 'right': 90}


class PageArrangement:
    def __init__(self, num_pages: int = 0):
        self.num_pages = 0
        self.page_order: List[int] = []
        self.rotations: Dict[int, int] = {}
        self.split_markers: Set[int] = set()
        self.initialize(num_pages)

    def initialize(self, num_pages: int):
        """Reset to the identity order for a freshly loaded document."""
        self.num_pages = max(0, int(num_pages))
        self.page_order = list(range(self.num_pages))
        self.rotations = {}
        self.split_markers = set()

    def __len__(self):
        return len(self.page_order)

    def _valid_page(self, logical_index: int) -> bool:
        return 0 <= logical_index < self.num_pages

    def rotation_for(self, logical_index: int) -> int:
        return self.rotations.get(logical_index, 0)

    def first_slot_of(self, logical_index: int) -> int:
        """Return the first slot holding ``logical_index`` or -1."""
        try:
            return self.page_order.index(logical_index)
        except ValueError:
            return -1

    def rotate(self, logical_index: int, direction: str) -> bool:
        """Turn a source page 90 degrees left or right.

        Rotation belongs to the source page, so every slot showing it is
        affected. Returns True when the rotation table changed.
        """
        if direction not in ROTATION_STEP:
            raise ValueError(f'unknown rotation direction: {direction!r}')
        if not self._valid_page(logical_index):
            logger.debug('rotate ignored: page %s out of range', logical_index)
            return False
        current = self.rotations.get(logical_index, 0)
        self.rotations[logical_index] = (current + ROTATION_STEP[direction] + 360) % 360
        return True

    def duplicate(self, logical_index: int) -> bool:
        """Insert a copy of ``logical_index`` right after its first slot.

        Markers at or after that first slot move one position up, so a
        boundary that followed the original now follows the copy.
        """
        first = self.first_slot_of(logical_index)
        if first < 0:
            logger.debug('duplicate ignored: page %s not in order', logical_index)
            return False
        self.page_order.insert(first + 1, logical_index)
        self.split_markers = {m + 1 if m >= first else m for m in self.split_markers}
        return True

    def delete_by_slot(self, slot: int) -> bool:
        """Remove exactly one slot and shift the markers above it down."""
        if not 0 <= slot < len(self.page_order):
            logger.debug('delete ignored: slot %s out of range', slot)
            return False
        del self.page_order[slot]
        shifted = set()
        for m in self.split_markers:
            if m < slot:
                shifted.add(m)
            elif m > slot:
                shifted.add(m - 1)
        # the old last-but-one marker can end up pointing past the new end
        last = len(self.page_order) - 2
        self.split_markers = {m for m in shifted if m <= last}
        return True

    def delete_by_logical_index(self, logical_index: int) -> bool:
        """Remove every slot holding ``logical_index``."""
        slots = [i for i, page in enumerate(self.page_order) if page == logical_index]
        for slot in reversed(slots):
            self.delete_by_slot(slot)
        return bool(slots)

    def toggle_split(self, slot: int) -> bool:
        if not 0 <= slot <= len(self.page_order) - 2:
            logger.debug('split toggle ignored: slot %s out of range', slot)
            return False
        if slot in self.split_markers:
            self.split_markers.discard(slot)
        else:
            self.split_markers.add(slot)
        return True

    def to_dict(self) -> dict:
        return {
            'num_pages': self.num_pages,
            'page_order': list(self.page_order),
            'rotations': {str(k): v for k, v in sorted(self.rotations.items()) if v},
            'split_markers': sorted(self.split_markers),
        }
