"""
Bitcoin Drive Storage - Script Codec

This module serializes storage records into data-carrier scripts and parses
them back. Every script starts with OP_RETURN followed by a protocol prefix
literal:

    B://      OP_RETURN 19Hxig... <data> <media-type> "binary" <filename>
    BCAT      OP_RETURN 15DHFx... <chunk data>
    BCAT      OP_RETURN 15DHFx... "BCAT" <manifest json>
    MAP       OP_RETURN 1PuQa7... "SET" <key> <value> [<key> <value> ...]

In push-data framing each element is a script data push. In legacy framing
the elements are concatenated without length prefixes; a legacy manifest has
no "BCAT" tag, so any BCAT body that parses as a manifest is read as one.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .exceptions import (
    AmbiguousFramingError,
    DecodeError,
    EncodeError,
    MalformedRecordError,
    UnknownFormatError
)
from .records import (
    B_PREFIX,
    BCAT_INFO,
    BCAT_PREFIX,
    BINARY_ENCODING,
    MAP_PREFIX,
    MAP_SET_COMMAND,
    ChunkManifest,
    ChunkPayload,
    Framing,
    MetadataMap,
    SinglePayload,
    StorageRecord
)
from .utils import OP_RETURN, parse_push_sequence, serialize_push_data


KNOWN_PREFIXES = (B_PREFIX, BCAT_PREFIX, MAP_PREFIX)
PREFIX_LENGTH = len(B_PREFIX)
BCAT_INFO_TAG = BCAT_INFO.encode('ascii')

MANIFEST_REQUIRED_KEYS = frozenset({"info", "mediaType", "filename", "chunks"})
MANIFEST_OPTIONAL_KEYS = frozenset({"size"})


class ScriptCodec:
    """
    Encoder/decoder for B://, BCAT and MAP data-carrier scripts.

    Decoding detects the framing of the script on its own; ``framing`` only
    selects how new scripts are encoded.
    """

    def __init__(self, framing: Framing = Framing.PUSHDATA):
        self.framing = Framing(framing)
        self.logger = logging.getLogger(__name__)

    # Encoding

    def encode(self, record: StorageRecord) -> bytes:
        """
        Encode a record into a data-carrier script.

        Args:
            record: Record to encode

        Returns:
            Script bytes
        """
        if isinstance(record, SinglePayload):
            elements = [
                B_PREFIX,
                record.data,
                record.media_type.encode('utf-8'),
                BINARY_ENCODING,
                record.filename.encode('utf-8')
            ]
        elif isinstance(record, ChunkPayload):
            elements = [BCAT_PREFIX, record.data]
        elif isinstance(record, ChunkManifest):
            elements = [BCAT_PREFIX, self._serialize_manifest(record)]
            if self.framing == Framing.PUSHDATA:
                # The info tag push tells a manifest from a chunk holding the same JSON
                elements.insert(1, BCAT_INFO_TAG)
        elif isinstance(record, MetadataMap):
            elements = [MAP_PREFIX, MAP_SET_COMMAND]
            for key, value in record.entries:
                elements.append(key.encode('utf-8'))
                elements.append(value.encode('utf-8'))
        else:
            raise EncodeError(f"Unsupported record type: {type(record).__name__}")

        script = self._frame(elements)
        self.logger.debug(
            f"Encoded {record.kind.value} record: {len(script)} bytes ({self.framing.value})"
        )
        return script

    def _frame(self, elements: List[bytes]) -> bytes:
        script = bytes([OP_RETURN])
        if self.framing == Framing.PUSHDATA:
            for element in elements:
                script += serialize_push_data(element)
        else:
            for element in elements:
                script += element
        return script

    @staticmethod
    def _serialize_manifest(manifest: ChunkManifest) -> bytes:
        return json.dumps(
            manifest.to_dict(), separators=(',', ':'), ensure_ascii=False
        ).encode('utf-8')

    # Decoding

    def decode(self, script: bytes) -> StorageRecord:
        """
        Decode a data-carrier script into a record.

        Args:
            script: Script bytes

        Returns:
            Decoded record

        Raises:
            UnknownFormatError: Opcode or prefix is not a known literal
            MalformedRecordError: Known prefix with an invalid field layout
            AmbiguousFramingError: Legacy record without recoverable boundaries
        """
        if not isinstance(script, (bytes, bytearray)):
            raise DecodeError("Script must be bytes")
        script = bytes(script)

        if not script or script[0] != OP_RETURN:
            raise UnknownFormatError("Script does not start with OP_RETURN")

        body = script[1:]

        # Legacy framing: the prefix literal follows the opcode directly
        for prefix in KNOWN_PREFIXES:
            if body.startswith(prefix):
                return self._decode_legacy(prefix, body[len(prefix):])

        # Push-data framing: the first push is the prefix literal
        if len(body) > PREFIX_LENGTH and body[0] == PREFIX_LENGTH:
            prefix = body[1:1 + PREFIX_LENGTH]
            if prefix in KNOWN_PREFIXES:
                try:
                    pushes = parse_push_sequence(body)
                except ValueError as e:
                    raise MalformedRecordError(f"Invalid push data: {e}")
                return self._decode_fields(prefix, pushes[1:])

        raise UnknownFormatError("Unknown protocol prefix")

    def _decode_legacy(self, prefix: bytes, rest: bytes) -> StorageRecord:
        if prefix == BCAT_PREFIX:
            return self._decode_bcat_body(rest)
        raise AmbiguousFramingError(
            f"Legacy {prefix.decode('ascii')} record has no field boundaries"
        )

    def _decode_fields(self, prefix: bytes, fields: List[bytes]) -> StorageRecord:
        if prefix == B_PREFIX:
            return self._decode_b_fields(fields)
        elif prefix == BCAT_PREFIX:
            return self._decode_bcat_fields(fields)
        elif prefix == MAP_PREFIX:
            return self._decode_map_fields(fields)
        raise UnknownFormatError("Unknown protocol prefix")

    def _decode_b_fields(self, fields: List[bytes]) -> SinglePayload:
        if len(fields) != 4:
            raise MalformedRecordError(f"B:// record expects 4 fields, got {len(fields)}")

        data, media_type, encoding, filename = fields
        if encoding != BINARY_ENCODING:
            raise MalformedRecordError(f"Unsupported B:// encoding: {encoding!r}")

        try:
            return SinglePayload(
                data=data,
                media_type=_decode_text(media_type, "media type"),
                filename=_decode_text(filename, "filename")
            )
        except EncodeError as e:
            raise MalformedRecordError(str(e))

    def _decode_bcat_fields(self, fields: List[bytes]) -> StorageRecord:
        if len(fields) == 1:
            if not fields[0]:
                raise MalformedRecordError("BCAT record has no content")
            return ChunkPayload(data=fields[0])
        if len(fields) == 2 and fields[0] == BCAT_INFO_TAG:
            manifest = _parse_manifest(fields[1])
            if manifest is None:
                raise MalformedRecordError("BCAT manifest push is not a valid manifest document")
            return manifest
        raise MalformedRecordError(
            f"BCAT record expects a chunk push or an info tag and manifest, got {len(fields)} field(s)"
        )

    def _decode_bcat_body(self, body: bytes) -> StorageRecord:
        # Legacy bodies have no tag push; a manifest is recognised by its JSON
        manifest = _parse_manifest(body)
        if manifest is not None:
            return manifest
        if not body:
            raise MalformedRecordError("BCAT record has no content")
        return ChunkPayload(data=body)

    def _decode_map_fields(self, fields: List[bytes]) -> MetadataMap:
        if not fields or fields[0] != MAP_SET_COMMAND:
            raise MalformedRecordError("MAP record must start with the SET command")

        pairs = fields[1:]
        if not pairs or len(pairs) % 2 != 0:
            raise MalformedRecordError(
                f"MAP SET expects key/value pairs, got {len(pairs)} field(s)"
            )

        entries = []
        for i in range(0, len(pairs), 2):
            key = _decode_text(pairs[i], "MAP key")
            value = _decode_text(pairs[i + 1], "MAP value")
            entries.append((key, value))

        try:
            return MetadataMap(entries=tuple(entries))
        except EncodeError as e:
            raise MalformedRecordError(str(e))

    def detect_framing(self, script: bytes) -> Optional[Framing]:
        """Return the framing of a script with a known prefix, else None."""
        body = bytes(script[1:]) if script and script[0] == OP_RETURN else b''
        if any(body.startswith(prefix) for prefix in KNOWN_PREFIXES):
            return Framing.LEGACY
        if len(body) > PREFIX_LENGTH and body[0] == PREFIX_LENGTH \
                and body[1:1 + PREFIX_LENGTH] in KNOWN_PREFIXES:
            return Framing.PUSHDATA
        return None


def _decode_text(raw: bytes, name: str) -> str:
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError:
        raise MalformedRecordError(f"Invalid UTF-8 in {name}")


def _parse_manifest(body: bytes) -> Optional[ChunkManifest]:
    """Parse a BCAT body as a manifest, or return None if it is chunk data."""
    if not body.startswith(b'{'):
        return None

    try:
        data: Dict[str, Any] = json.loads(body.decode('utf-8'))
    except (UnicodeDecodeError, ValueError):
        return None

    if not isinstance(data, dict) or data.get("info") != BCAT_INFO:
        return None

    keys = set(data)
    if not MANIFEST_REQUIRED_KEYS <= keys or keys - MANIFEST_REQUIRED_KEYS - MANIFEST_OPTIONAL_KEYS:
        return None

    chunks = data["chunks"]
    if not isinstance(chunks, list) or not chunks \
            or not all(isinstance(c, str) and c for c in chunks):
        return None
    if not isinstance(data["mediaType"], str) or not isinstance(data["filename"], str):
        return None

    size = data.get("size")
    if size is not None and (isinstance(size, bool) or not isinstance(size, int) or size < 0):
        return None

    return ChunkManifest(
        chunk_ids=tuple(chunks),
        media_type=data["mediaType"],
        filename=data["filename"],
        size=size
    )


# Utility functions
def encode_record(record: StorageRecord, framing: Framing = Framing.PUSHDATA) -> bytes:
    """
    Encode a record with a one-off codec.

    Args:
        record: Record to encode
        framing: Field framing

    Returns:
        Script bytes
    """
    return ScriptCodec(framing).encode(record)


def decode_record(script: bytes) -> StorageRecord:
    """
    Decode a script with a one-off codec.

    Args:
        script: Script bytes

    Returns:
        Decoded record
    """
    return ScriptCodec().decode(script)
