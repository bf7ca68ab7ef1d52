"""
Bitcoin Drive Storage - Chunker

Splits a byte buffer into ordered, size-bounded segments for BCAT uploads.
"""

from dataclasses import dataclass
from typing import Iterator, Tuple

from .exceptions import InvalidSegmentSizeError


DEFAULT_SEGMENT_SIZE = 90000


@dataclass(frozen=True)
class ChunkSet:
    """Ordered segments of one buffer; concatenation reproduces the buffer."""
    segments: Tuple[bytes, ...]
    segment_size: int

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.segments)

    def __getitem__(self, index: int) -> bytes:
        return self.segments[index]

    @property
    def total_size(self) -> int:
        return sum(len(segment) for segment in self.segments)

    def join(self) -> bytes:
        return b''.join(self.segments)


def validate_segment_size(max_segment_size) -> int:
    """Return the segment size or raise InvalidSegmentSizeError."""
    if isinstance(max_segment_size, bool) or not isinstance(max_segment_size, int) \
            or max_segment_size <= 0:
        raise InvalidSegmentSizeError(max_segment_size)
    return max_segment_size


def split(buffer: bytes, max_segment_size: int = DEFAULT_SEGMENT_SIZE) -> ChunkSet:
    """
    Slice a buffer left to right into segments of at most max_segment_size.

    A zero-length buffer yields an empty ChunkSet; callers treat that as
    "nothing to upload".

    Args:
        buffer: Bytes to split
        max_segment_size: Maximum segment length in bytes

    Returns:
        ChunkSet with ceil(len(buffer) / max_segment_size) segments
    """
    size = validate_segment_size(max_segment_size)
    data = bytes(buffer)

    segments = tuple(data[i:i + size] for i in range(0, len(data), size))
    return ChunkSet(segments=segments, segment_size=size)


def count_segments(length: int, max_segment_size: int = DEFAULT_SEGMENT_SIZE) -> int:
    """Number of segments split() produces for a buffer of this length."""
    size = validate_segment_size(max_segment_size)
    return -(-length // size)
