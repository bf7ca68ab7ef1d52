"""
Bitcoin Drive Storage - Exceptions

This module defines the exception hierarchy for record encoding, decoding,
configuration and upload sequencing.
"""


class StorageError(Exception):
    """Base exception for all storage errors."""
    pass


class ConfigError(StorageError):
    """Raised for invalid static configuration."""
    pass


class InvalidSegmentSizeError(ConfigError):
    """Raised when the maximum segment size is not a positive integer."""

    def __init__(self, segment_size, message: str = None):
        self.segment_size = segment_size
        if message is None:
            message = f"Invalid segment size: {segment_size!r} (must be a positive integer)"
        super().__init__(message)


class EncodeError(StorageError):
    """Raised when a record cannot be built or encoded."""
    pass


class DecodeError(StorageError):
    """Raised when a script cannot be decoded into a record."""
    pass


class UnknownFormatError(DecodeError):
    """Raised when the opcode or protocol prefix is not a known literal."""
    pass


class MalformedRecordError(DecodeError):
    """Raised when a known prefix is followed by an invalid field layout."""
    pass


class AmbiguousFramingError(DecodeError):
    """Raised when a legacy record has no recoverable field boundaries."""
    pass


class PaymentError(StorageError):
    """Raised by a payment or balance capability when settlement fails."""
    pass


class UploadError(StorageError):
    """Base exception for upload failures."""
    pass


class EmptyInputError(UploadError):
    """Raised when a zero-byte file is submitted for upload."""

    def __init__(self, filename: str = "", message: str = None):
        self.filename = filename
        if message is None:
            message = f"Nothing to upload: {filename or 'file'} is empty"
        super().__init__(message)


class InsufficientFundsError(UploadError):
    """Raised when the spendable balance is below the working threshold."""

    def __init__(self, required: int, available: int, message: str = None):
        self.required = required
        self.available = available
        if message is None:
            message = (
                f"Insufficient balance: required {required} satoshis, "
                f"available {available} satoshis"
            )
        super().__init__(message)


class PaymentFailedError(UploadError):
    """
    Raised when a payment fails part-way through an upload.

    ``state`` is the saga cursor of a chunked upload (None for single
    payload and NFT records) so a caller can resume instead of restarting.
    """

    def __init__(self, reason: str, stage: str, failed_index: int = None,
                 state=None, upload_result=None):
        self.reason = reason
        self.stage = stage
        self.failed_index = failed_index
        self.state = state
        self.upload_result = upload_result

        message = f"Payment failed during {stage}"
        if failed_index is not None:
            message += f" at index {failed_index}"
        message += f": {reason}"
        if state is not None:
            message += f" ({self.settled_count} chunk(s) already settled)"
        super().__init__(message)

    @property
    def settled_count(self) -> int:
        """Number of chunks settled before the failure."""
        if self.state is None:
            return 0
        return len(self.state.completed_chunk_ids)


class UploadCancelledError(UploadError):
    """
    Raised when the caller cancels before the next payment is issued.

    A cancel between a stored file and its NFT record carries the file's
    ``upload_result`` so the token can still be minted later.
    """

    def __init__(self, state=None, upload_result=None, message: str = None):
        self.state = state
        self.upload_result = upload_result
        if message is None:
            if upload_result is not None:
                message = f"Upload cancelled after storing file {upload_result.primary_id}"
            else:
                settled = len(state.completed_chunk_ids) if state is not None else 0
                message = f"Upload cancelled after {settled} settled chunk(s)"
        super().__init__(message)


class ResumeStateError(UploadError):
    """Raised when a saved resume cursor is malformed or does not match the file."""
    pass


class NFTRecordError(UploadError):
    """Raised when the NFT record cannot be built for a file already stored."""

    def __init__(self, reason: str, upload_result, message: str = None):
        self.reason = reason
        self.upload_result = upload_result
        if message is None:
            message = (
                f"NFT record could not be built for stored file "
                f"{upload_result.primary_id}: {reason}"
            )
        super().__init__(message)
