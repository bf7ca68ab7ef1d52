#!/usr/bin/env python3
"""
Bitcoin Drive - Command Line Interface

Store files on-chain as B:// or BCAT records, mint NFTs for them, price
uploads, and decode or fetch stored records.
"""

from typing import Optional

import click

from cli import __version__
from cli.commands.config import config
from cli.commands.inspect import decode, fetch
from cli.commands.upload import estimate, upload
from cli.config import PROFILES
from cli.context import CLIContext, handle_cli_error, pass_context


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--config-file', '-c',
              type=click.Path(dir_okay=False),
              help='Path to configuration file')
@click.option('--profile', '-p',
              type=click.Choice(sorted(PROFILES)),
              help='Configuration profile')
@click.option('--output-format', '-o',
              type=click.Choice(['table', 'json', 'yaml']),
              default=None,
              help='Output format')
@click.option('--verbose', '-v',
              count=True,
              help='Increase verbosity (-v for INFO, -vv for DEBUG)')
@click.version_option(__version__, prog_name='bdrive')
@pass_context
@handle_cli_error
def cli(ctx: CLIContext, config_file: Optional[str], profile: Optional[str],
        output_format: Optional[str], verbose: int):
    """
    Bitcoin Drive Command Line Interface

    Store files on the BSV blockchain and mint .nft containers for them.

    Examples:
        bdrive upload photo.jpg
        bdrive upload video.mp4 --nft --name "My Video"
        bdrive estimate photo.jpg --exchange-rate 50
        bdrive decode 6a2231394878...
        bdrive fetch <txid> -O photo.jpg
    """
    ctx.config_file = config_file
    ctx.profile = profile
    ctx.verbose = verbose

    ctx.setup_logging()
    ctx.load_config()

    ctx.output_format = output_format or ctx.get_config('cli.output_format', 'table')
    ctx.logger.debug("CLI initialized with context")


cli.add_command(upload)
cli.add_command(estimate)
cli.add_command(decode)
cli.add_command(fetch)
cli.add_command(config)


def main():
    """Console script entry point."""
    cli()


if __name__ == '__main__':
    main()
