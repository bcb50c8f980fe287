"""Sectioning and export engine.

Sections are derived on demand from the current page order, either from
the manual split markers or from a fixed page interval. Exporting walks the
retained sections in order and asks the codec to build one document per
section.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class ExportFailure(Exception):
    """A codec call failed during export.

    ``delivered`` lists the files already handed out in the same run; they
    are not taken back.
    """

    def __init__(self, message: str, delivered: Optional[List[str]] = None):
        super().__init__(message)
        self.delivered = list(delivered or [])


@dataclass(frozen=True)
class Section:
    index: int
    start: int
    end: int  # inclusive, start - 1 for an empty section
    pages: Tuple[int, ...]

    @property
    def length(self) -> int:
        return len(self.pages)

    def to_dict(self) -> dict:
        return {
            'index': self.index,
            'start': self.start,
            'end': self.end,
            'length': self.length,
            'pages': list(self.pages),
        }


def split_filename(i: int) -> str:
    return f'split_{i}.pdf'


def _manual_bounds(count: int, markers: Iterable[int]) -> List[Tuple[int, int]]:
    bounds = []
    start = 0
    for marker in sorted(set(markers)):
        if marker < start or marker >= count - 1:
            continue
        bounds.append((start, marker))
        start = marker + 1
    bounds.append((start, count - 1))
    return bounds


def _interval_bounds(count: int, interval: int) -> List[Tuple[int, int]]:
    return [(s, min(s + interval, count) - 1) for s in range(0, count, interval)]


def compute_sections(page_order: Sequence[int], markers: Optional[Iterable[int]] = None,
                     interval: Optional[int] = None) -> List[Section]:
    """Partition ``page_order`` into contiguous sections.

    With ``interval`` set the markers are ignored and the order is cut into
    chunks of ``interval`` slots (the last one may be shorter). Otherwise
    each marker closes a section after its slot and the remainder forms the
    final section. An empty order yields no sections.
    """
    count = len(page_order)
    if count == 0:
        return []
    if interval is not None:
        if interval < 1:
            raise ValueError(f'interval must be >= 1, got {interval}')
        bounds = _interval_bounds(count, interval)
    else:
        bounds = _manual_bounds(count, markers or ())
    return [
        Section(index=i, start=start, end=end, pages=tuple(page_order[start:end + 1]))
        for i, (start, end) in enumerate(bounds)
    ]


def export_sections(sections: Sequence[Section], skipped: Iterable[int],
                    rotations: Dict[int, int], codec, source,
                    deliver: Callable[[str, bytes], None]) -> List[str]:
    """Build and deliver one PDF per section not in ``skipped``.

    Output files are numbered 1..n over the retained sections only. Every
    codec call runs to completion before the next one starts. Returns the
    delivered file names; raises ExportFailure on the first codec error.
    """
    skipped = set(skipped)
    retained = [s for s in sections if s.index not in skipped and s.length]
    delivered: List[str] = []
    start = time.time()
    for number, section in enumerate(retained, start=1):
        name = split_filename(number)
        try:
            target = codec.create_empty()
            for logical_index in section.pages:
                page = codec.copy_page(source, logical_index)
                rotation = rotations.get(logical_index, 0)
                if rotation:
                    codec.apply_rotation(page, rotation)
                codec.append_page(target, page)
            data = codec.serialize(target)
            deliver(name, data)
        except Exception as exc:
            logger.exception('export failed on section %d (%s)', section.index, name)
            raise ExportFailure(f'failed to build {name}: {exc}', delivered) from exc
        delivered.append(name)
        logger.debug('exported %s: %d pages, %d bytes', name, section.length, len(data))
    logger.info('export_sections: %d of %d sections exported in %.2fs',
                len(delivered), len(sections), time.time() - start)
    return delivered
