"""
Configuration Commands for Bitcoin Drive CLI

Commands for inspecting and validating the merged CLI configuration.
"""

import click

from ..config import CONFIG_SEARCH_PATHS, ENV_PREFIX, PROFILES
from ..context import CLIContext, handle_cli_error, pass_context


# Keys whose values are never displayed
SECRET_KEYS = ('auth_token', 'app_secret')


def _redact(data):
    if isinstance(data, dict):
        return {
            key: ("***" if key in SECRET_KEYS and value else _redact(value))
            for key, value in data.items()
        }
    return data


@click.group()
def config():
    """
    Configuration management commands.

    Configuration is merged from defaults, an optional profile, the first
    config file found and BDRIVE_ environment variables.
    """


@config.command('show')
@click.argument('key_path', required=False)
@pass_context
@handle_cli_error
def show(ctx: CLIContext, key_path):
    """
    Show the merged configuration, or one value by dot path.

    Examples:
        bdrive config show
        bdrive config show storage.chunk_threshold
    """
    if key_path:
        value = ctx.get_config(key_path)
        if value is None:
            raise click.ClickException(f"Unknown configuration key: {key_path}")
        ctx.output({key_path: _redact(value)})
        return

    ctx.output(_redact(ctx.config_manager.load()))


@config.command('validate')
@pass_context
@handle_cli_error
def validate(ctx: CLIContext):
    """Validate the merged configuration."""
    errors = ctx.config_manager.validate()
    if errors:
        for error in errors:
            click.echo(f"  - {error}", err=True)
        raise click.ClickException(f"{len(errors)} configuration error(s)")
    click.echo("Configuration is valid.")


@config.command('sources')
@pass_context
@handle_cli_error
def sources(ctx: CLIContext):
    """List where configuration was loaded from."""
    ctx.output({
        "loaded": ctx.config_manager.get_sources(),
        "search_paths": [str(path) for path in CONFIG_SEARCH_PATHS],
        "profiles": sorted(PROFILES),
        "env_prefix": ENV_PREFIX
    })
