"""
Upload Commands for Bitcoin Drive CLI

Commands for pricing and storing files on-chain, optionally minting an NFT
for the stored file.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import click

from nft.container import NFTOptions
from storage.exceptions import (
    NFTRecordError,
    PaymentFailedError,
    ResumeStateError,
    UploadCancelledError
)
from storage.orchestrator import UploadOptions
from storage.records import FilePayload, UploadResult, UploadState

from ..context import CLIContext, echo_progress, handle_cli_error, pass_context


def _nft_options(name: Optional[str], description: Optional[str], creator: Optional[str],
                 royalty: Optional[float], max_supply: Optional[int]) -> NFTOptions:
    return NFTOptions(
        name=name,
        description=description,
        creator=creator,
        royalty_percentage=royalty,
        max_supply=max_supply
    )


def _load_saved(path: str, kind: str) -> Dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text())
    except ValueError as e:
        raise ResumeStateError(f"Invalid {kind} file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ResumeStateError(f"Invalid {kind} file {path}: expected a JSON object")
    return data


def _save_json(path: str, data: Dict[str, Any]) -> None:
    Path(path).write_text(json.dumps(data, indent=2))


@click.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--media-type', help='Media type (guessed from the filename if omitted)')
@click.option('--force-chunked', is_flag=True, help='Store in BCAT chunks regardless of size')
@click.option('--nft', 'create_nft', is_flag=True, help='Mint an NFT for the stored file')
@click.option('--name', help='NFT name (defaults to the filename)')
@click.option('--description', help='NFT description')
@click.option('--creator', help='NFT creator handle (defaults to the wallet profile)')
@click.option('--royalty', type=click.FloatRange(0, 100), help='NFT royalty percentage')
@click.option('--max-supply', type=click.IntRange(min=1), help='NFT maximum supply')
@click.option('--resume', 'resume_file', type=click.Path(exists=True, dir_okay=False),
              help='Resume a failed chunked upload from a saved state file')
@click.option('--state-file', type=click.Path(dir_okay=False),
              help='Where to save the upload state if a chunked upload stops')
@click.option('--reuse-upload', 'reuse_file', type=click.Path(exists=True, dir_okay=False),
              help='Mint the NFT for a file stored earlier, from its saved upload file')
@click.option('--dry-run', is_flag=True, help='Simulate payments without a wallet')
@click.option('--yes', '-y', is_flag=True, help='Skip the cost confirmation')
@pass_context
@handle_cli_error
def upload(ctx: CLIContext, file_path: str, media_type: Optional[str], force_chunked: bool,
           create_nft: bool, name: Optional[str], description: Optional[str],
           creator: Optional[str], royalty: Optional[float], max_supply: Optional[int],
           resume_file: Optional[str], state_file: Optional[str], reuse_file: Optional[str],
           dry_run: bool, yes: bool):
    """
    Store a file on-chain.

    Files up to the chunk threshold are written as one B:// record; larger
    files are split into BCAT chunks linked by a manifest.

    If the NFT step fails after the file is stored, the stored file is saved
    to FILE.upload.json; pass it to --reuse-upload to mint without paying for
    the file again.

    Examples:
        bdrive upload photo.jpg
        bdrive upload video.mp4 --nft --name "My Video" --royalty 5
        bdrive upload big.bin --resume big.state.json
        bdrive upload video.mp4 --nft --reuse-upload video.mp4.upload.json
    """
    if reuse_file and not create_nft:
        raise click.UsageError("--reuse-upload requires --nft")
    if reuse_file and resume_file:
        raise click.UsageError("--reuse-upload cannot be combined with --resume")

    file = FilePayload.from_path(file_path, media_type=media_type)
    orchestrator = ctx.build_orchestrator(dry_run=dry_run)
    options = UploadOptions(
        force_chunked=force_chunked,
        create_nft=create_nft,
        nft=_nft_options(name, description, creator, royalty, max_supply) if create_nft else None
    )

    resume = None
    if resume_file:
        resume = UploadState.from_dict(_load_saved(resume_file, "upload state"))
        ctx.logger.info(f"Resuming at chunk {resume.next_index + 1}/{resume.total_chunks}")

    stored = None
    if reuse_file:
        stored = UploadResult.from_dict(_load_saved(reuse_file, "upload result"))
        ctx.logger.info(f"Reusing stored file {stored.primary_id}")

    if not yes and not dry_run:
        if stored is not None:
            cost = orchestrator.nft_builder.quote(file)
        else:
            cost = orchestrator.quote(file, options)
        if not click.confirm(f"Upload {file.filename} for {cost.base_units} satoshis?", default=True):
            click.echo("Upload aborted.", err=True)
            return

    state_path = state_file or f"{file_path}.state.json"
    upload_path = f"{file_path}.upload.json"
    try:
        if stored is not None:
            result = orchestrator.nft_builder.create_container(
                file, options.nft, progress=echo_progress, upload_result=stored
            )
        else:
            result = orchestrator.upload(file, options, progress=echo_progress, resume=resume)
    except (PaymentFailedError, UploadCancelledError, NFTRecordError) as e:
        state = getattr(e, 'state', None)
        if state is not None and state.next_index > 0:
            _save_json(state_path, state.to_dict())
            click.echo(f"Upload state saved to {state_path}; retry with --resume {state_path}", err=True)
        if e.upload_result is not None and stored is None:
            _save_json(upload_path, e.upload_result.to_dict())
            click.echo(
                f"Stored file saved to {upload_path}; mint with --nft --reuse-upload {upload_path}",
                err=True
            )
        raise

    ctx.output(result.to_dict())


@click.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--force-chunked', is_flag=True, help='Price as BCAT chunks regardless of size')
@click.option('--nft', 'create_nft', is_flag=True, help='Include the NFT record')
@click.option('--exchange-rate', type=float, help='Fiat price of one BSV')
@pass_context
@handle_cli_error
def estimate(ctx: CLIContext, file_path: str, force_chunked: bool, create_nft: bool,
             exchange_rate: Optional[float]):
    """
    Price a file upload without paying.

    Examples:
        bdrive estimate photo.jpg
        bdrive estimate photo.jpg --nft --exchange-rate 50
    """
    file = FilePayload.from_path(file_path)
    orchestrator = ctx.build_orchestrator(dry_run=True)
    if exchange_rate is not None:
        orchestrator.estimator.exchange_rate = exchange_rate

    options = UploadOptions(force_chunked=force_chunked, create_nft=create_nft)
    scheme = orchestrator.select_scheme(file.size, force_chunked)
    cost = orchestrator.quote(file, options)

    data = {
        "file": file.filename,
        "size": file.size,
        "scheme": scheme.value,
        "nft": create_nft
    }
    data.update(cost.to_dict())
    ctx.output(data)
