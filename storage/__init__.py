"""
Bitcoin Drive Storage

This package encodes files into on-chain data-carrier records (B://, BCAT and
MAP), prices them, and sequences their payments through a wallet capability.
"""

from .exceptions import (
    StorageError,
    ConfigError,
    InvalidSegmentSizeError,
    EncodeError,
    DecodeError,
    UnknownFormatError,
    MalformedRecordError,
    AmbiguousFramingError,
    PaymentError,
    UploadError,
    EmptyInputError,
    InsufficientFundsError,
    PaymentFailedError,
    UploadCancelledError,
    ResumeStateError,
    NFTRecordError
)

from .records import (
    FilePayload,
    SinglePayload,
    ChunkPayload,
    ChunkManifest,
    MetadataMap,
    StorageRecord,
    RecordKind,
    StorageScheme,
    Framing,
    UploadState,
    UploadResult
)

from .capabilities import (
    PaymentCapability,
    ProfileProvider,
    PaymentReceipt,
    Balance,
    Profile
)

from .codec import ScriptCodec, encode_record, decode_record
from .chunker import ChunkSet, split, count_segments
from .cost import Cost, CostEstimator, PriceRule, DEFAULT_PRICE_TABLE
from .config import StorageConfig
from .progress import (
    ProgressStatus,
    ProgressEvent,
    ProgressEmitter,
    ProgressLog,
    ProgressQueue
)
from .orchestrator import UploadOrchestrator, UploadOptions
from .retrieval import FileRetriever

__version__ = "1.0.0"

__all__ = [
    # Errors
    "StorageError",
    "ConfigError",
    "InvalidSegmentSizeError",
    "EncodeError",
    "DecodeError",
    "UnknownFormatError",
    "MalformedRecordError",
    "AmbiguousFramingError",
    "PaymentError",
    "UploadError",
    "EmptyInputError",
    "InsufficientFundsError",
    "PaymentFailedError",
    "UploadCancelledError",
    "ResumeStateError",
    "NFTRecordError",

    # Records
    "FilePayload",
    "SinglePayload",
    "ChunkPayload",
    "ChunkManifest",
    "MetadataMap",
    "StorageRecord",
    "RecordKind",
    "StorageScheme",
    "Framing",
    "UploadState",
    "UploadResult",

    # Capabilities
    "PaymentCapability",
    "ProfileProvider",
    "PaymentReceipt",
    "Balance",
    "Profile",

    # Components
    "ScriptCodec",
    "encode_record",
    "decode_record",
    "ChunkSet",
    "split",
    "count_segments",
    "Cost",
    "CostEstimator",
    "PriceRule",
    "DEFAULT_PRICE_TABLE",
    "StorageConfig",
    "ProgressStatus",
    "ProgressEvent",
    "ProgressEmitter",
    "ProgressLog",
    "ProgressQueue",
    "UploadOrchestrator",
    "UploadOptions",
    "FileRetriever",
]
