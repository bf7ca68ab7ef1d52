"""
Bitcoin Drive - NFT Container Builder

This module turns a stored file into a .nft token: it runs the file upload
through the orchestrator, builds an NFTDescription referencing the upload's
content address, and pays for one more MAP record carrying the description.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from storage.capabilities import ProfileProvider
from storage.cost import Cost
from storage.exceptions import (
    EmptyInputError,
    EncodeError,
    NFTRecordError,
    PaymentError,
    PaymentFailedError,
    UploadCancelledError
)
from storage.progress import ProgressEmitter, ProgressSink
from storage.records import FilePayload, StorageScheme, UploadResult, UploadState
from storage.utils import explorer_url

from .metadata import DescriptionValidator, NFTAttribute, NFTDescription

# Stands in for the file's settlement id while metadata is checked before payment
_SETTLEMENT_ID_PLACEHOLDER = "0" * 64


@dataclass(frozen=True)
class NFTOptions:
    """Caller-supplied token metadata."""
    name: Optional[str] = None
    description: Optional[str] = None
    creator: Optional[str] = None
    royalty_percentage: Optional[float] = None
    max_supply: Optional[int] = None
    attributes: Tuple[NFTAttribute, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'attributes', tuple(
            NFTAttribute.from_dict(attr) if isinstance(attr, dict) else attr
            for attr in self.attributes
        ))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NFTOptions':
        return cls(
            name=data.get("name"),
            description=data.get("description"),
            creator=data.get("creator"),
            royalty_percentage=data.get("royalty_percentage"),
            max_supply=data.get("max_supply"),
            attributes=tuple(data.get("attributes", ()))
        )


@dataclass(frozen=True)
class NFTResult:
    """Outcome of a completed NFT creation."""
    upload: UploadResult
    nft_id: str
    nft_url: str
    view_url: str
    description: NFTDescription
    amount_paid: int = 0

    @property
    def file_id(self) -> str:
        return self.upload.primary_id

    @property
    def total_paid(self) -> int:
        return self.upload.amount_paid + self.amount_paid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nft_id": self.nft_id,
            "nft_url": self.nft_url,
            "view_url": self.view_url,
            "file": self.upload.to_dict(),
            "description": self.description.to_dict(),
            "amount_paid": self.amount_paid,
            "total_paid": self.total_paid
        }


class NFTContainerBuilder:
    """
    Creates NFT containers on top of UploadOrchestrator's payment path.

    Caller metadata is validated against a provisional description before
    the file is paid for. The real description is only built after the file
    upload has settled, so a token never references a file that was not
    stored.
    """

    def __init__(self, orchestrator, profile_provider: Optional[ProfileProvider] = None):
        """
        Initialize NFT container builder.

        Args:
            orchestrator: UploadOrchestrator used for the file and the MAP record
            profile_provider: Supplies the creator handle when none is given
        """
        self.orchestrator = orchestrator
        self.profile_provider = profile_provider
        self.validator = DescriptionValidator()
        self.logger = logging.getLogger(__name__)

    def create_container(
        self,
        file: FilePayload,
        metadata: Optional[Union[NFTOptions, Dict[str, Any]]] = None,
        progress: Optional[ProgressSink] = None,
        force_chunked: bool = False,
        resume: Optional[UploadState] = None,
        cancel: Optional[threading.Event] = None,
        upload_result: Optional[UploadResult] = None
    ) -> NFTResult:
        """
        Upload a file and mint its NFT description.

        Args:
            file: File to store
            metadata: Token name, description, creator and extra attributes
            progress: Sink receiving ProgressEvent values in order
            force_chunked: Store the file in chunks regardless of size
            resume: Cursor from a failed chunked upload of the same file
            cancel: Event that stops the sequence before the next payment
            upload_result: Completed upload of ``file``; skips the file step

        Returns:
            NFTResult with the file upload and the description record

        Raises:
            NFTDescriptionError: The metadata is invalid; nothing was paid
            PaymentFailedError: A payment failed; for the NFT record it
                carries the completed ``upload_result`` for a retry
            UploadCancelledError: Cancelled; after the file step it carries
                the completed ``upload_result``
            NFTRecordError: The record could not be built after the file
                was stored; carries ``upload_result``
        """
        options = self._coerce_options(metadata)
        emitter = ProgressEmitter(progress)
        emitter.preparing(f"Preparing NFT for {file.filename or 'file'}...")

        try:
            self.orchestrator.check_ready(file)
            creator = self._resolve_creator(options)
            self.check_options(file, options, creator, upload_result)

            if upload_result is None:
                upload_result = self.orchestrator.store_file(
                    file, emitter, force_chunked=force_chunked, resume=resume, cancel=cancel
                )
            else:
                self.logger.info(f"Reusing stored file {upload_result.primary_id}")

            result = self._mint(file, options, creator, upload_result, emitter, cancel)
        except Exception as e:
            emitter.error(e)
            raise

        emitter.complete("NFT created!", result)
        return result

    def check_options(self, file: FilePayload, options: NFTOptions, creator: Optional[str] = None,
                      upload_result: Optional[UploadResult] = None) -> None:
        """
        Validate caller metadata without paying for anything.

        Without a completed upload the description is checked against a
        placeholder content address.

        Raises:
            NFTDescriptionError: If the resulting description would be invalid
        """
        if upload_result is None:
            upload_result = UploadResult(
                primary_id=_SETTLEMENT_ID_PLACEHOLDER,
                url=self.orchestrator.content_address(_SETTLEMENT_ID_PLACEHOLDER),
                scheme=self.orchestrator.select_scheme(file.size)
            )
        self.validator.validate(self.build_description(file, options, creator, upload_result,
                                                       datetime.now(timezone.utc)))

    def _mint(self, file: FilePayload, options: NFTOptions, creator: Optional[str],
              upload_result: UploadResult, emitter: ProgressEmitter,
              cancel: Optional[threading.Event]) -> NFTResult:
        try:
            description = self.build_description(file, options, creator, upload_result,
                                                 datetime.now(timezone.utc))
            self.validator.validate(description)
            record = description.to_metadata_map(self.orchestrator.config.app_name)
            script = self.orchestrator.codec.encode(record)
        except EncodeError as e:
            raise NFTRecordError(str(e), upload_result) from e
        amount = self.orchestrator.estimator.estimate(StorageScheme.NFT, file.size).base_units

        if cancel is not None and cancel.is_set():
            self.logger.warning(f"NFT cancelled after storing file {upload_result.primary_id}")
            raise UploadCancelledError(upload_result=upload_result)

        emitter.uploading("Creating NFT container...")
        try:
            receipt = self.orchestrator.submit_script(script, amount, stage="nft")
        except PaymentFailedError as e:
            raise PaymentFailedError(
                e.reason, stage="nft", upload_result=upload_result
            ) from e

        self.logger.info(f"NFT {description.name!r} minted: {receipt.settlement_id}")
        return NFTResult(
            upload=upload_result,
            nft_id=receipt.settlement_id,
            nft_url=self.orchestrator.content_address(receipt.settlement_id),
            view_url=explorer_url(receipt.settlement_id, self.orchestrator.config.explorer_host),
            description=description,
            amount_paid=amount
        )

    def build_description(self, file: FilePayload, options: NFTOptions, creator: Optional[str],
                          upload_result: UploadResult, created_at: datetime) -> NFTDescription:
        """
        Build the token description for a stored file.

        The file reference is the upload's content address; for chunked
        files that is the manifest, never an individual chunk.
        ``created_at`` stamps both the description and its "Created" attribute.
        """
        reference = upload_result.url
        filename = file.filename or "Untitled"

        attributes: List[NFTAttribute] = [
            NFTAttribute("File Type", file.media_type),
            NFTAttribute("File Size", file.size, display_type="number"),
            NFTAttribute("Created", created_at.isoformat(), display_type="date"),
        ]
        if creator:
            attributes.append(NFTAttribute("Creator", creator))
        attributes.extend(options.attributes)

        return NFTDescription(
            name=options.name if options.name is not None else filename,
            description=options.description or f"NFT of {filename}",
            image=reference,
            creator=creator,
            attributes=tuple(attributes),
            properties={"files": [{"uri": reference, "type": file.media_type}]},
            royalty_percentage=options.royalty_percentage,
            max_supply=options.max_supply,
            content_hash=file.content_hash(),
            created_at=created_at
        )

    def _resolve_creator(self, options: NFTOptions) -> Optional[str]:
        # An explicit creator, even an empty one, is never replaced
        if options.creator is not None:
            return options.creator
        return self._profile_handle()

    def _profile_handle(self) -> Optional[str]:
        if self.profile_provider is None:
            return None
        try:
            return self.profile_provider.get_profile().handle or None
        except PaymentError as e:
            self.logger.warning(f"Creator profile unavailable, minting without creator: {e}")
            return None

    def quote(self, file: FilePayload) -> Cost:
        """Cost of the NFT description record alone."""
        if file.size == 0:
            raise EmptyInputError(file.filename)
        return self.orchestrator.estimator.estimate(StorageScheme.NFT, file.size)

    @staticmethod
    def _coerce_options(metadata) -> NFTOptions:
        if metadata is None:
            return NFTOptions()
        if isinstance(metadata, dict):
            return NFTOptions.from_dict(metadata)
        return metadata
