"""
Bitcoin Drive Storage - Script Utilities

This module provides script push-data serialization, hashing and URL helpers
shared by the codec, the orchestrator and the wallet adapters.
"""

import hashlib
import struct
from typing import List, Tuple


# Script opcodes
OP_0 = 0x00
OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_RETURN = 0x6a

MAX_DIRECT_PUSH = 75
MAX_PUSHDATA4_SIZE = 0xffffffff


def serialize_push_data(data: bytes) -> bytes:
    """
    Serialize bytes as a single script data push.

    Args:
        data: Bytes to push

    Returns:
        Push opcode, length and data
    """
    length = len(data)

    if length == 0:
        return bytes([OP_0])
    elif length <= MAX_DIRECT_PUSH:
        return bytes([length]) + data
    elif length <= 0xff:
        return bytes([OP_PUSHDATA1, length]) + data
    elif length <= 0xffff:
        return bytes([OP_PUSHDATA2]) + struct.pack('<H', length) + data
    elif length <= MAX_PUSHDATA4_SIZE:
        return bytes([OP_PUSHDATA4]) + struct.pack('<I', length) + data
    else:
        raise ValueError(f"Push data too large: {length} bytes")


def parse_push_data(script: bytes, offset: int = 0) -> Tuple[bytes, int]:
    """
    Parse one data push from script bytes.

    Args:
        script: Script bytes
        offset: Offset of the push opcode

    Returns:
        Tuple of (pushed_data, new_offset)
    """
    if offset >= len(script):
        raise ValueError("Insufficient data for push opcode")

    opcode = script[offset]
    offset += 1

    if opcode == OP_0:
        return b'', offset
    elif opcode <= MAX_DIRECT_PUSH:
        length = opcode
    elif opcode == OP_PUSHDATA1:
        if offset + 1 > len(script):
            raise ValueError("Insufficient data for OP_PUSHDATA1 length")
        length = script[offset]
        offset += 1
    elif opcode == OP_PUSHDATA2:
        if offset + 2 > len(script):
            raise ValueError("Insufficient data for OP_PUSHDATA2 length")
        length = struct.unpack('<H', script[offset:offset + 2])[0]
        offset += 2
    elif opcode == OP_PUSHDATA4:
        if offset + 4 > len(script):
            raise ValueError("Insufficient data for OP_PUSHDATA4 length")
        length = struct.unpack('<I', script[offset:offset + 4])[0]
        offset += 4
    else:
        raise ValueError(f"Unexpected opcode 0x{opcode:02x} at offset {offset - 1}")

    if offset + length > len(script):
        raise ValueError(f"Push of {length} bytes exceeds script length")

    return script[offset:offset + length], offset + length


def parse_push_sequence(script: bytes, offset: int = 0) -> List[bytes]:
    """Parse consecutive data pushes until the end of the script."""
    pushes = []
    while offset < len(script):
        data, offset = parse_push_data(script, offset)
        pushes.append(data)
    return pushes


def double_sha256(data: bytes) -> bytes:
    """
    Calculate double SHA256 hash (used for transaction IDs).

    Args:
        data: Data to hash

    Returns:
        Double SHA256 hash
    """
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def sha256_digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha256_hex(data: bytes) -> str:
    """Hex SHA256 digest of data."""
    return hashlib.sha256(data).hexdigest()


def content_address(settlement_id: str, resolver_host: str) -> str:
    """Build the content-address URL of a settled record."""
    return f"https://{resolver_host}/{settlement_id}"


def explorer_url(settlement_id: str, explorer_host: str) -> str:
    """Build the block explorer URL of a settled record."""
    return f"https://{explorer_host}/tx/{settlement_id}"
