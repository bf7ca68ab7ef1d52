"""
Inspection Commands for Bitcoin Drive CLI

Commands for decoding data-carrier scripts and fetching stored files back
from the chain.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import click

from network.explorer import ChainReader
from nft.metadata import MAP_TYPE_NFT, NFTDescription
from storage.codec import ScriptCodec
from storage.exceptions import DecodeError
from storage.records import ChunkManifest, ChunkPayload, MetadataMap, SinglePayload
from storage.retrieval import FileRetriever
from storage.utils import sha256_hex

from ..context import CLIContext, handle_cli_error, pass_context


def describe_record(record) -> Dict[str, Any]:
    """Summarize a decoded record for display."""
    data: Dict[str, Any] = {"kind": record.kind.value}

    if isinstance(record, SinglePayload):
        data.update({
            "media_type": record.media_type,
            "filename": record.filename,
            "size": len(record.data),
            "sha256": sha256_hex(record.data)
        })
    elif isinstance(record, ChunkPayload):
        data.update({"size": len(record.data), "sha256": sha256_hex(record.data)})
    elif isinstance(record, ChunkManifest):
        data.update({
            "media_type": record.media_type,
            "filename": record.filename,
            "size": record.size,
            "chunks": list(record.chunk_ids)
        })
    elif isinstance(record, MetadataMap):
        data["entries"] = [f"{key}={value}" for key, value in record.entries]
        if record.get("type") == MAP_TYPE_NFT and record.get("data"):
            try:
                data["nft"] = NFTDescription.from_metadata_map(record).to_dict()
            except (ValueError, KeyError) as e:
                raise DecodeError(f"MAP record carries an invalid NFT description: {e}")

    return data


@click.command()
@click.argument('script_hex', required=False)
@click.option('--file', 'script_file', type=click.Path(exists=True, dir_okay=False),
              help='Read the raw script bytes from a file')
@pass_context
@handle_cli_error
def decode(ctx: CLIContext, script_hex: Optional[str], script_file: Optional[str]):
    """
    Decode a B://, BCAT or MAP script.

    Examples:
        bdrive decode 6a2231394878...
        bdrive decode --file script.bin
    """
    if script_file:
        script = Path(script_file).read_bytes()
    elif script_hex:
        try:
            script = bytes.fromhex(script_hex.strip())
        except ValueError:
            raise click.BadParameter("Script must be hex-encoded", param_hint="SCRIPT_HEX")
    else:
        raise click.UsageError("Provide SCRIPT_HEX or --file")

    codec = ScriptCodec()
    record = codec.decode(script)
    data = describe_record(record)
    data["framing"] = codec.detect_framing(script).value
    ctx.output(data)


@click.command()
@click.argument('settlement_id')
@click.option('--output', '-O', 'output_path', type=click.Path(dir_okay=False),
              help='Write the file here (defaults to the stored filename)')
@pass_context
@handle_cli_error
def fetch(ctx: CLIContext, settlement_id: str, output_path: Optional[str]):
    """
    Download a stored file by its B:// or manifest settlement id.

    Examples:
        bdrive fetch 3f5a...e1 -O photo.jpg
    """
    reader = ChainReader(ctx.config_manager.explorer_config() if ctx.config_manager else None)
    retriever = FileRetriever(reader.fetch_script)
    file = retriever.retrieve(settlement_id)

    target = Path(output_path) if output_path else Path(Path(file.filename).name or settlement_id)
    target.write_bytes(file.data)

    ctx.output({
        "settlement_id": settlement_id,
        "filename": file.filename,
        "media_type": file.media_type,
        "size": file.size,
        "sha256": file.content_hash(),
        "saved_to": str(target)
    })
