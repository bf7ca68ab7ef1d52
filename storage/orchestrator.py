"""
Bitcoin Drive Storage - Upload Orchestrator

This module selects a storage scheme for a file, encodes its records and
sequences their payments through an external payment capability.

Chunked uploads are an ordered log of irreversible writes: chunk i+1 is only
paid for after chunk i settled, the manifest only after every chunk settled.
A failure stops the sequence and hands the caller an UploadState cursor so a
retry resumes at the failed chunk instead of starting over.
"""

import logging
import operator
import threading
from dataclasses import dataclass
from functools import reduce
from typing import Any, List, Optional

from . import chunker
from .capabilities import PaymentCapability, PaymentReceipt, ProfileProvider
from .codec import ScriptCodec
from .config import StorageConfig
from .cost import Cost, CostEstimator
from .exceptions import (
    EmptyInputError,
    InsufficientFundsError,
    PaymentError,
    PaymentFailedError,
    ResumeStateError,
    UploadCancelledError
)
from .progress import ProgressEmitter, ProgressSink
from .records import (
    ChunkManifest,
    ChunkPayload,
    FilePayload,
    SinglePayload,
    StorageScheme,
    UploadResult,
    UploadState
)
from .utils import content_address, explorer_url


# Placeholder used to size a manifest before its chunk ids exist
_SETTLEMENT_ID_PLACEHOLDER = "0" * 64


@dataclass(frozen=True)
class UploadOptions:
    """Caller overrides for one upload."""
    force_chunked: bool = False
    create_nft: bool = False
    nft: Optional[Any] = None


class UploadOrchestrator:
    """
    Drives single-payload and chunked uploads.

    The orchestrator holds no per-upload state; concurrent uploads through one
    instance are independent and produce independent settlement ids.
    """

    def __init__(
        self,
        wallet: PaymentCapability,
        config: Optional[StorageConfig] = None,
        codec: Optional[ScriptCodec] = None,
        estimator: Optional[CostEstimator] = None,
        profile_provider: Optional[ProfileProvider] = None
    ):
        """
        Initialize upload orchestrator.

        Args:
            wallet: Payment and balance capability
            config: Storage configuration
            codec: Script codec (defaults to the configured framing)
            estimator: Cost estimator (defaults to the configured price table)
            profile_provider: Supplies the creator handle for NFTs
        """
        self.wallet = wallet
        self.config = config or StorageConfig()
        self.codec = codec or ScriptCodec(self.config.framing)
        self.estimator = estimator or CostEstimator(
            price_table=self.config.price_table,
            exchange_rate=self.config.exchange_rate,
            fiat_currency=self.config.fiat_currency
        )
        self.profile_provider = profile_provider
        self.logger = logging.getLogger(__name__)
        self._nft_builder = None

    @property
    def nft_builder(self):
        """NFT container builder sharing this orchestrator's payment path."""
        if self._nft_builder is None:
            from nft.container import NFTContainerBuilder
            self._nft_builder = NFTContainerBuilder(self, profile_provider=self.profile_provider)
        return self._nft_builder

    def select_scheme(self, size: int, force_chunked: bool = False) -> StorageScheme:
        """
        Choose the storage scheme for a file size.

        Files up to and including the chunk threshold are stored as a single
        payload unless chunking is forced.
        """
        if force_chunked or size > self.config.chunk_threshold:
            return StorageScheme.CHUNKED
        return StorageScheme.SINGLE

    def upload(
        self,
        file: FilePayload,
        options: Optional[UploadOptions] = None,
        progress: Optional[ProgressSink] = None,
        resume: Optional[UploadState] = None,
        cancel: Optional[threading.Event] = None
    ):
        """
        Upload a file, emitting preparing, uploading and complete events.

        Args:
            file: File to store
            options: Scheme overrides and NFT request
            progress: Sink receiving ProgressEvent values in order
            resume: Cursor from a failed chunked upload of the same file
            cancel: Event that stops the sequence before the next payment

        Returns:
            UploadResult, or NFTResult when options.create_nft is set

        Raises:
            EmptyInputError: File has no content
            InsufficientFundsError: Balance below the working threshold
            PaymentFailedError: A payment failed (carries the saga state)
            UploadCancelledError: Cancelled before the next payment
        """
        options = options or UploadOptions()

        if options.create_nft:
            return self.nft_builder.create_container(
                file,
                options.nft,
                progress=progress,
                force_chunked=options.force_chunked,
                resume=resume,
                cancel=cancel
            )

        emitter = ProgressEmitter(progress)
        emitter.preparing(f"Preparing {file.filename or 'file'} for upload...")

        try:
            self.check_ready(file)
            result = self.store_file(
                file,
                emitter,
                force_chunked=options.force_chunked,
                resume=resume,
                cancel=cancel
            )
        except Exception as e:
            emitter.error(e)
            raise

        emitter.complete("Upload complete!", result)
        return result

    def check_ready(self, file: FilePayload) -> None:
        """
        Pre-flight checks run before any payment.

        The balance check is advisory: concurrent spends can still exhaust
        the wallet mid-sequence, which then surfaces as PaymentFailedError.
        """
        if file.size == 0:
            raise EmptyInputError(file.filename)

        try:
            balance = self.wallet.get_spendable_balance()
        except PaymentError as e:
            raise PaymentFailedError(str(e), stage="balance") from e

        self.logger.info(f"Spendable balance: {balance.amount} satoshis")
        if balance.amount < self.config.min_balance:
            raise InsufficientFundsError(self.config.min_balance, balance.amount)

    def store_file(
        self,
        file: FilePayload,
        emitter: ProgressEmitter,
        force_chunked: bool = False,
        resume: Optional[UploadState] = None,
        cancel: Optional[threading.Event] = None
    ) -> UploadResult:
        """Run the single or chunked path, emitting only uploading events."""
        if file.size == 0:
            raise EmptyInputError(file.filename)

        scheme = self.select_scheme(file.size, force_chunked)
        if resume is not None or scheme == StorageScheme.CHUNKED:
            return self._upload_chunked(file, emitter, resume, cancel)
        return self._upload_single(file, emitter, cancel)

    def _upload_single(self, file: FilePayload, emitter: ProgressEmitter,
                       cancel: Optional[threading.Event]) -> UploadResult:
        script = self.codec.encode(SinglePayload.from_file(file))
        amount = self.estimator.estimate(StorageScheme.SINGLE, len(script)).base_units

        self.check_cancelled(cancel, None)
        emitter.uploading(f"Uploading {file.filename or 'file'} to blockchain...")
        self.logger.info(f"Uploading {file.filename} ({file.size} bytes) as a single B:// record")

        receipt = self.submit_script(script, amount, stage="single")
        return self._result(receipt.settlement_id, StorageScheme.SINGLE, None, amount)

    def _upload_chunked(self, file: FilePayload, emitter: ProgressEmitter,
                        resume: Optional[UploadState],
                        cancel: Optional[threading.Event]) -> UploadResult:
        chunks = chunker.split(file.data, self.config.max_segment_size)
        total = len(chunks)

        state = resume if resume is not None else UploadState.start(total)
        if state.total_chunks != total:
            raise ResumeStateError(
                f"Resume state expects {state.total_chunks} chunk(s), "
                f"file splits into {total}"
            )

        # Encode every chunk before the first payment
        scripts: List[bytes] = [self.codec.encode(ChunkPayload(data=segment)) for segment in chunks]
        amount_paid = 0

        if state.next_index:
            self.logger.info(
                f"Resuming {file.filename} at chunk {state.next_index + 1}/{total}"
            )
        else:
            self.logger.info(
                f"Uploading {file.filename} ({file.size} bytes) in {total} BCAT chunk(s)"
            )

        for index in range(state.next_index, total):
            self.check_cancelled(cancel, state)
            emitter.uploading(f"Uploading chunk {index + 1}/{total} of {file.filename or 'file'}...")

            amount = self.estimator.estimate(StorageScheme.CHUNKED, len(scripts[index])).base_units
            receipt = self.submit_script(
                scripts[index], amount, stage="chunk", failed_index=index, state=state
            )
            state = state.advance(receipt.settlement_id)
            amount_paid += amount
            self.logger.debug(f"Chunk {index + 1}/{total} settled: {receipt.settlement_id}")

        manifest = ChunkManifest(
            chunk_ids=state.completed_chunk_ids,
            media_type=file.media_type,
            filename=file.filename,
            size=file.size
        )
        manifest_script = self.codec.encode(manifest)
        amount = self.estimator.estimate(StorageScheme.METADATA, len(manifest_script)).base_units

        self.check_cancelled(cancel, state)
        emitter.uploading(f"Writing BCAT manifest for {file.filename or 'file'}...")
        receipt = self.submit_script(manifest_script, amount, stage="manifest", state=state)
        amount_paid += amount

        return self._result(
            receipt.settlement_id, StorageScheme.CHUNKED, state.completed_chunk_ids, amount_paid
        )

    def submit_script(self, script: bytes, amount: int, stage: str,
                      failed_index: Optional[int] = None,
                      state: Optional[UploadState] = None) -> PaymentReceipt:
        """
        Pay for one script, translating PaymentError into PaymentFailedError.

        Args:
            script: Encoded record
            amount: Payment in satoshis
            stage: Upload stage reported on failure
            failed_index: Chunk index reported on failure
            state: Saga cursor reported on failure
        """
        self.logger.debug(f"Paying {amount} satoshis for {len(script)}-byte {stage} script")
        try:
            receipt = self.wallet.pay(script, amount)
        except PaymentError as e:
            self.logger.warning(f"Payment failed during {stage}: {e}")
            raise PaymentFailedError(
                str(e), stage=stage, failed_index=failed_index, state=state
            ) from e

        self.logger.info(f"{stage.capitalize()} record settled: {receipt.settlement_id}")
        return receipt

    def check_cancelled(self, cancel: Optional[threading.Event],
                         state: Optional[UploadState]) -> None:
        if cancel is not None and cancel.is_set():
            self.logger.warning("Upload cancelled before next payment")
            raise UploadCancelledError(state)

    def _result(self, settlement_id: str, scheme: StorageScheme,
                chunk_ids, amount_paid: int) -> UploadResult:
        return UploadResult(
            primary_id=settlement_id,
            url=self.content_address(settlement_id),
            scheme=scheme,
            chunk_ids=chunk_ids,
            view_url=explorer_url(settlement_id, self.config.explorer_host),
            amount_paid=amount_paid
        )

    def content_address(self, settlement_id: str) -> str:
        return content_address(settlement_id, self.config.resolver_host)

    def quote(self, file: FilePayload, options: Optional[UploadOptions] = None) -> Cost:
        """
        Total cost of uploading a file, computed from the scripts it needs.

        Args:
            file: File to price
            options: Scheme overrides and NFT request

        Returns:
            Cost of every payment the upload would make
        """
        options = options or UploadOptions()
        if file.size == 0:
            raise EmptyInputError(file.filename)

        scheme = self.select_scheme(file.size, options.force_chunked)
        if scheme == StorageScheme.SINGLE:
            script = self.codec.encode(SinglePayload.from_file(file))
            total = self.estimator.estimate(StorageScheme.SINGLE, len(script))
        else:
            chunks = chunker.split(file.data, self.config.max_segment_size)
            costs = [
                self.estimator.estimate(
                    StorageScheme.CHUNKED, len(self.codec.encode(ChunkPayload(data=segment)))
                )
                for segment in chunks
            ]

            manifest = ChunkManifest(
                chunk_ids=(_SETTLEMENT_ID_PLACEHOLDER,) * len(chunks),
                media_type=file.media_type,
                filename=file.filename,
                size=file.size
            )
            manifest_size = len(self.codec.encode(manifest))
            costs.append(self.estimator.estimate(StorageScheme.METADATA, manifest_size))
            total = reduce(operator.add, costs)

        if options.create_nft:
            total = total + self.nft_builder.quote(file)

        return total
