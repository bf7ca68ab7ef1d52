"""
Tests for the B://, BCAT and MAP Script Codec
"""

import json

import pytest

from storage.codec import ScriptCodec, decode_record, encode_record
from storage.exceptions import (
    AmbiguousFramingError,
    DecodeError,
    EncodeError,
    MalformedRecordError,
    UnknownFormatError
)
from storage.records import (
    B_PREFIX,
    BCAT_PREFIX,
    MAP_PREFIX,
    ChunkManifest,
    ChunkPayload,
    Framing,
    MetadataMap,
    RecordKind,
    SinglePayload
)
from storage.utils import OP_PUSHDATA1, OP_PUSHDATA2, OP_PUSHDATA4, OP_RETURN, serialize_push_data


class TestPushData:
    """Test script push-data helpers."""

    def test_empty_push_is_op_0(self):
        assert serialize_push_data(b'') == b'\x00'

    def test_direct_push(self):
        assert serialize_push_data(b'abc') == b'\x03abc'
        assert serialize_push_data(b'x' * 75)[0] == 75

    def test_pushdata1(self):
        pushed = serialize_push_data(b'x' * 76)
        assert pushed[0] == OP_PUSHDATA1
        assert pushed[1] == 76

    def test_pushdata2(self):
        pushed = serialize_push_data(b'x' * 300)
        assert pushed[0] == OP_PUSHDATA2
        assert pushed[1:3] == (300).to_bytes(2, 'little')

    def test_pushdata4(self):
        pushed = serialize_push_data(b'x' * 70000)
        assert pushed[0] == OP_PUSHDATA4
        assert pushed[1:5] == (70000).to_bytes(4, 'little')


class TestScriptEncoding:
    """Test record encoding."""

    def setup_method(self):
        self.codec = ScriptCodec()

    def test_single_payload_layout(self):
        record = SinglePayload(data=b'hello', media_type='text/plain', filename='a.txt')
        script = self.codec.encode(record)

        expected = bytes([OP_RETURN]) + b''.join(serialize_push_data(f) for f in [
            B_PREFIX, b'hello', b'text/plain', b'binary', b'a.txt'
        ])
        assert script == expected

    def test_chunk_payload_layout(self):
        script = self.codec.encode(ChunkPayload(data=b'\x00\x01\x02'))
        assert script == bytes([OP_RETURN]) + serialize_push_data(BCAT_PREFIX) + b'\x03\x00\x01\x02'

    def test_manifest_is_compact_json(self):
        manifest = ChunkManifest(chunk_ids=('aa', 'bb'), media_type='video/mp4',
                                 filename='clip.mp4', size=10)
        script = self.codec.encode(manifest)

        body = script[1 + 1 + len(BCAT_PREFIX):]
        # Info tag push, then one push holding the JSON document
        assert body[:5] == b'\x04BCAT'
        assert body[5] == OP_PUSHDATA1
        document = body[7:]
        assert document == (b'{"info":"BCAT","mediaType":"video/mp4","filename":"clip.mp4",'
                            b'"chunks":["aa","bb"],"size":10}')

    def test_map_layout_keeps_order_and_duplicates(self):
        record = MetadataMap.from_pairs([("app", "x"), ("type", "a"), ("type", "b")])
        script = self.codec.encode(record)

        expected = bytes([OP_RETURN]) + b''.join(serialize_push_data(f) for f in [
            MAP_PREFIX, b'SET', b'app', b'x', b'type', b'a', b'type', b'b'
        ])
        assert script == expected

    def test_legacy_framing_concatenates_fields(self):
        codec = ScriptCodec(Framing.LEGACY)
        record = SinglePayload(data=b'hi', media_type='text/plain', filename='a.txt')

        script = codec.encode(record)

        assert script == bytes([OP_RETURN]) + B_PREFIX + b'hi' + b'text/plain' + b'binary' + b'a.txt'

    def test_unsupported_record(self):
        with pytest.raises(EncodeError, match="Unsupported record type"):
            self.codec.encode("not a record")


class TestRecordValidation:
    """Test record construction rules."""

    def test_empty_chunk_rejected(self):
        with pytest.raises(EncodeError, match="Chunk data cannot be empty"):
            ChunkPayload(data=b'')

    def test_empty_single_payload_rejected(self):
        with pytest.raises(EncodeError, match="Payload data cannot be empty"):
            SinglePayload(data=b'', media_type='text/plain', filename='a.txt')

    def test_manifest_requires_chunks(self):
        with pytest.raises(EncodeError, match="at least one chunk"):
            ChunkManifest(chunk_ids=(), media_type='text/plain', filename='a.txt')

    def test_map_key_must_be_string(self):
        with pytest.raises(EncodeError, match="Metadata key"):
            MetadataMap.from_pairs([(1, "x")])

    def test_map_value_must_be_string(self):
        with pytest.raises(EncodeError, match="Metadata value"):
            MetadataMap.from_pairs([("size", 10)])

    def test_map_requires_entries(self):
        with pytest.raises(EncodeError, match="at least one entry"):
            MetadataMap(entries=())

    def test_map_last_write_wins(self):
        record = MetadataMap.from_pairs([("type", "a"), ("type", "b")])
        assert record.get("type") == "b"
        assert len(record.entries) == 2


class TestScriptDecoding:
    """Test decoding push-data framed scripts."""

    def setup_method(self):
        self.codec = ScriptCodec()

    @pytest.mark.parametrize("record", [
        SinglePayload(data=b'\x00\xff' * 100, media_type='image/png', filename='pic.png'),
        SinglePayload(data=b'x', media_type='', filename=''),
        ChunkPayload(data=b'segment'),
        ChunkManifest(chunk_ids=('a' * 64, 'b' * 64), media_type='video/mp4', filename='v.mp4'),
        MetadataMap.from_pairs([("app", "bitcoin-drive"), ("type", "nft"), ("data", "{}")]),
    ])
    def test_decode_inverts_encode(self, record):
        assert self.codec.decode(self.codec.encode(record)) == record

    def test_filename_with_control_bytes(self):
        record = SinglePayload(data=b'data', media_type='text/plain', filename='a\x00binary\x1fb.txt')
        assert self.codec.decode(self.codec.encode(record)) == record

    def test_decoded_kinds(self):
        script = self.codec.encode(ChunkPayload(data=b'abc'))
        assert self.codec.decode(script).kind == RecordKind.CHUNK_PAYLOAD

    def test_chunk_that_looks_like_json_stays_chunk(self):
        record = ChunkPayload(data=b'{"info":"BCAT"}')
        assert isinstance(self.codec.decode(self.codec.encode(record)), ChunkPayload)

    def test_manifest_with_extra_keys_is_chunk(self):
        body = json.dumps({"info": "BCAT", "mediaType": "a", "filename": "b",
                           "chunks": ["c"], "extra": 1}).encode()
        script = bytes([OP_RETURN]) + serialize_push_data(BCAT_PREFIX) + serialize_push_data(body)
        assert isinstance(self.codec.decode(script), ChunkPayload)

    def test_chunk_holding_manifest_json_round_trips(self):
        record = ChunkPayload(
            data=b'{"info":"BCAT","mediaType":"x","filename":"y","chunks":["ab"]}'
        )
        assert self.codec.decode(self.codec.encode(record)) == record

    def test_tagged_push_must_hold_manifest(self):
        fields = [BCAT_PREFIX, b'BCAT', b'not a manifest']
        script = bytes([OP_RETURN]) + b''.join(serialize_push_data(f) for f in fields)
        with pytest.raises(MalformedRecordError, match="not a valid manifest"):
            self.codec.decode(script)

    def test_bcat_wrong_field_count(self):
        fields = [BCAT_PREFIX, b'a', b'b', b'c']
        script = bytes([OP_RETURN]) + b''.join(serialize_push_data(f) for f in fields)
        with pytest.raises(MalformedRecordError, match="got 3 field"):
            self.codec.decode(script)

    def test_bcat_empty_chunk_push(self):
        script = bytes([OP_RETURN]) + serialize_push_data(BCAT_PREFIX) + serialize_push_data(b'')
        with pytest.raises(MalformedRecordError, match="no content"):
            self.codec.decode(script)

    def test_not_op_return(self):
        with pytest.raises(UnknownFormatError, match="OP_RETURN"):
            self.codec.decode(b'\x76\xa9')

    def test_empty_script(self):
        with pytest.raises(UnknownFormatError):
            self.codec.decode(b'')

    def test_unknown_prefix(self):
        script = bytes([OP_RETURN]) + serialize_push_data(b'1' * 34) + b'\x01x'
        with pytest.raises(UnknownFormatError, match="Unknown protocol prefix"):
            self.codec.decode(script)

    def test_truncated_push(self):
        script = self.codec.encode(ChunkPayload(data=b'abcdef'))[:-2]
        with pytest.raises(MalformedRecordError, match="Invalid push data"):
            self.codec.decode(script)

    def test_b_record_wrong_field_count(self):
        script = bytes([OP_RETURN]) + serialize_push_data(B_PREFIX) + serialize_push_data(b'data')
        with pytest.raises(MalformedRecordError, match="expects 4 fields"):
            self.codec.decode(script)

    def test_b_record_wrong_encoding(self):
        fields = [B_PREFIX, b'data', b'text/plain', b'utf-8', b'a.txt']
        script = bytes([OP_RETURN]) + b''.join(serialize_push_data(f) for f in fields)
        with pytest.raises(MalformedRecordError, match="encoding"):
            self.codec.decode(script)

    def test_map_without_set(self):
        fields = [MAP_PREFIX, b'GET', b'k', b'v']
        script = bytes([OP_RETURN]) + b''.join(serialize_push_data(f) for f in fields)
        with pytest.raises(MalformedRecordError, match="SET"):
            self.codec.decode(script)

    def test_map_odd_fields(self):
        fields = [MAP_PREFIX, b'SET', b'k', b'v', b'dangling']
        script = bytes([OP_RETURN]) + b''.join(serialize_push_data(f) for f in fields)
        with pytest.raises(MalformedRecordError, match="key/value pairs"):
            self.codec.decode(script)

    def test_map_invalid_utf8(self):
        fields = [MAP_PREFIX, b'SET', b'\xff\xfe', b'v']
        script = bytes([OP_RETURN]) + b''.join(serialize_push_data(f) for f in fields)
        with pytest.raises(MalformedRecordError, match="UTF-8"):
            self.codec.decode(script)

    def test_non_bytes_input(self):
        with pytest.raises(DecodeError, match="bytes"):
            self.codec.decode("6a")


class TestLegacyDecoding:
    """Test decoding scripts without push framing."""

    def setup_method(self):
        self.codec = ScriptCodec(Framing.LEGACY)

    def test_legacy_chunk(self):
        script = self.codec.encode(ChunkPayload(data=b'raw bytes'))
        assert self.codec.decode(script) == ChunkPayload(data=b'raw bytes')
        assert self.codec.detect_framing(script) == Framing.LEGACY

    def test_legacy_manifest(self):
        manifest = ChunkManifest(chunk_ids=('a', 'b'), media_type='image/gif', filename='x.gif', size=5)
        assert self.codec.decode(self.codec.encode(manifest)) == manifest

    def test_legacy_single_payload_is_ambiguous(self):
        script = self.codec.encode(SinglePayload(data=b'hi', media_type='text/plain', filename='a'))
        with pytest.raises(AmbiguousFramingError):
            self.codec.decode(script)

    def test_legacy_map_is_ambiguous(self):
        script = self.codec.encode(MetadataMap.from_pairs([("k", "v")]))
        with pytest.raises(AmbiguousFramingError):
            self.codec.decode(script)

    def test_pushdata_decoder_reads_legacy(self):
        script = self.codec.encode(ChunkPayload(data=b'abc'))
        assert ScriptCodec(Framing.PUSHDATA).decode(script) == ChunkPayload(data=b'abc')


class TestUtilityFunctions:
    """Test module-level helpers."""

    def test_encode_decode_record(self):
        record = ChunkPayload(data=b'abc')
        assert decode_record(encode_record(record)) == record

    def test_detect_framing_unknown(self):
        assert ScriptCodec().detect_framing(b'\x6a\x01x') is None

    def test_detect_framing_pushdata(self):
        script = encode_record(ChunkPayload(data=b'abc'))
        assert ScriptCodec().detect_framing(script) == Framing.PUSHDATA
