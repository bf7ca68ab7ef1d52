"""
Bitcoin Drive Storage - Record Types

This module defines the value types produced and consumed within a single
upload: the file payload, the four on-chain record variants, the chunked
upload cursor and the upload result.
"""

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from .exceptions import EncodeError, ResumeStateError
from .utils import sha256_hex


# Protocol prefix literals
B_PREFIX = b'19HxigV4QyBv3tHpQVcUEQyq1pzZVdoAut'
BCAT_PREFIX = b'15DHFxWZJT58f9nhyGnsRBqrgwK4W6h4Up'
MAP_PREFIX = b'1PuQa7K62MiKCtssSLKy1kh56WWU7MtUR5'

MAP_SET_COMMAND = b'SET'
BINARY_ENCODING = b'binary'
BCAT_INFO = 'BCAT'

DEFAULT_MEDIA_TYPE = 'application/octet-stream'


class RecordKind(Enum):
    """On-chain record variants."""
    SINGLE_PAYLOAD = "single_payload"
    CHUNK_PAYLOAD = "chunk_payload"
    CHUNK_MANIFEST = "chunk_manifest"
    METADATA_MAP = "metadata_map"


class StorageScheme(str, Enum):
    """Priced storage encodings."""
    SINGLE = "single"
    CHUNKED = "chunked"
    METADATA = "metadata"
    NFT = "nft"


class Framing(str, Enum):
    """How fields are delimited after the protocol prefix."""
    PUSHDATA = "pushdata"
    LEGACY = "legacy"


def _require_text(value: Any, name: str) -> None:
    if not isinstance(value, str):
        raise EncodeError(f"{name} must be a string, got {type(value).__name__}")


def _require_bytes(value: Any, name: str) -> bytes:
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if not isinstance(value, bytes):
        raise EncodeError(f"{name} must be bytes, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class FilePayload:
    """An immutable file buffer with its declared media type and filename."""
    data: bytes
    media_type: str = DEFAULT_MEDIA_TYPE
    filename: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'data', _require_bytes(self.data, "File data"))
        _require_text(self.media_type, "Media type")
        _require_text(self.filename, "Filename")

    @property
    def size(self) -> int:
        return len(self.data)

    def content_hash(self) -> str:
        """SHA256 hex digest of the file contents."""
        return sha256_hex(self.data)

    @classmethod
    def from_path(cls, path: Union[str, Path], media_type: Optional[str] = None) -> 'FilePayload':
        """Read a file from disk, guessing the media type from its name."""
        path = Path(path)
        if media_type is None:
            media_type = mimetypes.guess_type(path.name)[0] or DEFAULT_MEDIA_TYPE
        return cls(data=path.read_bytes(), media_type=media_type, filename=path.name)


@dataclass(frozen=True)
class SinglePayload:
    """B:// record carrying a whole file."""
    data: bytes
    media_type: str
    filename: str

    def __post_init__(self):
        data = _require_bytes(self.data, "Payload data")
        if not data:
            raise EncodeError("Payload data cannot be empty")
        object.__setattr__(self, 'data', data)
        _require_text(self.media_type, "Media type")
        _require_text(self.filename, "Filename")

    @property
    def kind(self) -> RecordKind:
        return RecordKind.SINGLE_PAYLOAD

    @classmethod
    def from_file(cls, file: FilePayload) -> 'SinglePayload':
        return cls(data=file.data, media_type=file.media_type, filename=file.filename)


@dataclass(frozen=True)
class ChunkPayload:
    """BCAT record carrying one segment of a chunked file."""
    data: bytes

    def __post_init__(self):
        data = _require_bytes(self.data, "Chunk data")
        if not data:
            raise EncodeError("Chunk data cannot be empty")
        object.__setattr__(self, 'data', data)

    @property
    def kind(self) -> RecordKind:
        return RecordKind.CHUNK_PAYLOAD


@dataclass(frozen=True)
class ChunkManifest:
    """BCAT record linking every chunk settlement id of a file, in order."""
    chunk_ids: Tuple[str, ...]
    media_type: str
    filename: str
    size: Optional[int] = None

    def __post_init__(self):
        chunk_ids = tuple(self.chunk_ids)
        if not chunk_ids:
            raise EncodeError("Manifest must reference at least one chunk")
        for chunk_id in chunk_ids:
            if not isinstance(chunk_id, str) or not chunk_id:
                raise EncodeError(f"Invalid chunk settlement id: {chunk_id!r}")
        object.__setattr__(self, 'chunk_ids', chunk_ids)
        _require_text(self.media_type, "Media type")
        _require_text(self.filename, "Filename")
        if self.size is not None and (not isinstance(self.size, int) or self.size < 0):
            raise EncodeError(f"Invalid manifest size: {self.size!r}")

    @property
    def kind(self) -> RecordKind:
        return RecordKind.CHUNK_MANIFEST

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "info": BCAT_INFO,
            "mediaType": self.media_type,
            "filename": self.filename,
            "chunks": list(self.chunk_ids),
        }
        if self.size is not None:
            result["size"] = self.size
        return result


@dataclass(frozen=True)
class MetadataMap:
    """
    MAP record: a SET command followed by key/value pairs.

    Entries keep insertion order and may repeat a key; readers apply
    last-write-wins, the encoder never deduplicates.
    """
    entries: Tuple[Tuple[str, str], ...]

    def __post_init__(self):
        entries = tuple(tuple(entry) for entry in self.entries)
        if not entries:
            raise EncodeError("Metadata map must contain at least one entry")
        for entry in entries:
            if len(entry) != 2:
                raise EncodeError(f"Metadata entry must be a key/value pair: {entry!r}")
            key, value = entry
            if not isinstance(key, str) or not key:
                raise EncodeError(f"Metadata key must be a non-empty string: {key!r}")
            if not isinstance(value, str):
                raise EncodeError(f"Metadata value for '{key}' must be a string")
        object.__setattr__(self, 'entries', entries)

    @property
    def kind(self) -> RecordKind:
        return RecordKind.METADATA_MAP

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> 'MetadataMap':
        return cls(entries=tuple(pairs))

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> 'MetadataMap':
        return cls(entries=tuple(data.items()))

    def as_dict(self) -> Dict[str, str]:
        """Reader view of the map (last write for a key wins)."""
        result = {}
        for key, value in self.entries:
            result[key] = value
        return result

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.as_dict().get(key, default)


StorageRecord = Union[SinglePayload, ChunkPayload, ChunkManifest, MetadataMap]


@dataclass(frozen=True)
class UploadState:
    """
    Cursor of a chunked upload saga.

    ``completed_chunk_ids`` holds the settlement ids of chunks 0..next_index-1
    in order; chunk ``next_index`` is the next one to submit.
    """
    completed_chunk_ids: Tuple[str, ...]
    next_index: int
    total_chunks: int

    def __post_init__(self):
        object.__setattr__(self, 'completed_chunk_ids', tuple(self.completed_chunk_ids))
        if self.next_index != len(self.completed_chunk_ids):
            raise ResumeStateError(
                f"Cursor mismatch: next_index={self.next_index}, "
                f"completed={len(self.completed_chunk_ids)}"
            )
        if self.next_index > self.total_chunks:
            raise ResumeStateError(
                f"Cursor past end: next_index={self.next_index}, total={self.total_chunks}"
            )

    @classmethod
    def start(cls, total_chunks: int) -> 'UploadState':
        return cls(completed_chunk_ids=(), next_index=0, total_chunks=total_chunks)

    def advance(self, settlement_id: str) -> 'UploadState':
        """Return the cursor after one more chunk has settled."""
        return UploadState(
            completed_chunk_ids=self.completed_chunk_ids + (settlement_id,),
            next_index=self.next_index + 1,
            total_chunks=self.total_chunks
        )

    @property
    def chunks_complete(self) -> bool:
        return self.next_index == self.total_chunks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed_chunk_ids": list(self.completed_chunk_ids),
            "next_index": self.next_index,
            "total_chunks": self.total_chunks
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'UploadState':
        try:
            completed = data["completed_chunk_ids"]
            if isinstance(completed, str) or not all(isinstance(i, str) for i in completed):
                raise TypeError("completed_chunk_ids must be a list of settlement ids")
            return cls(
                completed_chunk_ids=tuple(completed),
                next_index=int(data["next_index"]),
                total_chunks=int(data["total_chunks"])
            )
        except KeyError as e:
            raise ResumeStateError(f"Upload state is missing {e}") from e
        except (TypeError, ValueError) as e:
            raise ResumeStateError(f"Invalid upload state: {e}") from e


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a completed file upload."""
    primary_id: str
    url: str
    scheme: StorageScheme
    chunk_ids: Optional[Tuple[str, ...]] = None
    view_url: Optional[str] = None
    amount_paid: int = 0

    def __post_init__(self):
        if self.chunk_ids is not None:
            object.__setattr__(self, 'chunk_ids', tuple(self.chunk_ids))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_id": self.primary_id,
            "url": self.url,
            "scheme": self.scheme.value,
            "chunk_ids": list(self.chunk_ids) if self.chunk_ids is not None else None,
            "view_url": self.view_url,
            "amount_paid": self.amount_paid
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'UploadResult':
        """Rebuild a saved result so a later NFT step can reuse the stored file."""
        try:
            chunk_ids = data.get("chunk_ids")
            return cls(
                primary_id=str(data["primary_id"]),
                url=str(data["url"]),
                scheme=StorageScheme(data["scheme"]),
                chunk_ids=tuple(chunk_ids) if chunk_ids is not None else None,
                view_url=data.get("view_url"),
                amount_paid=int(data.get("amount_paid", 0))
            )
        except KeyError as e:
            raise ResumeStateError(f"Upload result is missing {e}") from e
        except (AttributeError, TypeError, ValueError) as e:
            raise ResumeStateError(f"Invalid upload result: {e}") from e
