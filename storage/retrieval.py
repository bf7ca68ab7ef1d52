"""
Bitcoin Drive Storage - File Retrieval

Read path for stored files: fetches a settlement's script, decodes it and,
for a BCAT manifest, fetches and joins every chunk in manifest order.
"""

import logging
from typing import Callable, List, Optional

from .codec import ScriptCodec
from .exceptions import DecodeError
from .records import ChunkManifest, ChunkPayload, FilePayload, MetadataMap, SinglePayload


# Returns the data-carrier script settled under a settlement id
ScriptFetcher = Callable[[str], bytes]


class FileRetriever:
    """Reconstructs files from settlement ids."""

    def __init__(self, fetch_script: ScriptFetcher, codec: Optional[ScriptCodec] = None):
        """
        Initialize file retriever.

        Args:
            fetch_script: Callable returning the script stored under an id
            codec: Script codec (framing is detected per script)
        """
        self.fetch_script = fetch_script
        self.codec = codec or ScriptCodec()
        self.logger = logging.getLogger(__name__)

    def retrieve(self, settlement_id: str) -> FilePayload:
        """
        Fetch a file by the settlement id of its single payload or manifest.

        Raises:
            DecodeError: The id does not hold a file, a chunk is not a
                BCAT chunk, or the joined size differs from the manifest
        """
        record = self.codec.decode(self.fetch_script(settlement_id))

        if isinstance(record, SinglePayload):
            self.logger.info(f"Retrieved single payload {settlement_id} ({len(record.data)} bytes)")
            return FilePayload(data=record.data, media_type=record.media_type, filename=record.filename)

        if isinstance(record, ChunkManifest):
            return self._join_chunks(settlement_id, record)

        if isinstance(record, ChunkPayload):
            raise DecodeError(f"{settlement_id} is a chunk, retrieve its manifest instead")

        if isinstance(record, MetadataMap):
            raise DecodeError(f"{settlement_id} is a MAP record, not a stored file")

        raise DecodeError(f"Unsupported record for {settlement_id}: {type(record).__name__}")

    def _join_chunks(self, manifest_id: str, manifest: ChunkManifest) -> FilePayload:
        total = len(manifest.chunk_ids)
        self.logger.info(f"Manifest {manifest_id} references {total} chunk(s)")

        segments: List[bytes] = []
        for index, chunk_id in enumerate(manifest.chunk_ids):
            record = self.codec.decode(self.fetch_script(chunk_id))
            if not isinstance(record, ChunkPayload):
                raise DecodeError(
                    f"Chunk {index + 1}/{total} ({chunk_id}) is not a BCAT chunk"
                )
            segments.append(record.data)
            self.logger.debug(f"Fetched chunk {index + 1}/{total}: {len(record.data)} bytes")

        data = b''.join(segments)
        if manifest.size is not None and manifest.size != len(data):
            raise DecodeError(
                f"Reassembled {len(data)} bytes, manifest declares {manifest.size}"
            )

        return FilePayload(data=data, media_type=manifest.media_type, filename=manifest.filename)
