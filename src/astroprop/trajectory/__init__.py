"""Segment and sequence orchestration."""

from .segment import Segment, SegmentSolution, SegmentType
from .sequence import Sequence, SequenceSolution

__all__ = [
    'Segment',
    'SegmentSolution',
    'SegmentType',
    'Sequence',
    'SequenceSolution',
]
