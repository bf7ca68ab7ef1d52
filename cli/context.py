"""
Shared CLI context for Bitcoin Drive commands.

Holds the parsed global options, configures logging, renders output and
builds the storage components a command needs.
"""

import functools
import json
import logging
import sys
import traceback
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml
from tabulate import tabulate

from network.simulated import SimulatedWallet
from network.wallet import HandCashWallet
from storage.config import StorageConfig
from storage.exceptions import StorageError
from storage.orchestrator import UploadOrchestrator

from .config import ConfigurationManager


class CLIContext:
    """Global CLI context for sharing state across commands."""

    def __init__(self):
        self.config_file: Optional[str] = None
        self.profile: Optional[str] = None
        self.output_format: str = "table"
        self.verbose: int = 0
        self.config_manager: Optional[ConfigurationManager] = None
        self.logger: logging.Logger = logging.getLogger('bdrive-cli')

    def setup_logging(self):
        """Configure logging based on verbosity level."""
        log_levels = {
            0: logging.WARNING,
            1: logging.INFO,
            2: logging.DEBUG
        }
        level = log_levels.get(min(self.verbose, 2), logging.DEBUG)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)

        root = logging.getLogger()
        if not root.handlers:
            root.addHandler(handler)
        root.setLevel(level)

        # Suppress verbose third-party logs unless in debug mode
        if self.verbose < 2:
            logging.getLogger('requests').setLevel(logging.WARNING)
            logging.getLogger('urllib3').setLevel(logging.WARNING)

    def load_config(self):
        """Load configuration from defaults, profile, file and environment."""
        self.config_manager = ConfigurationManager(self.config_file, self.profile)
        self.config_manager.load()
        self.logger.debug(f"Configuration sources: {self.config_manager.get_sources()}")

    def get_config(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value with fallback to default."""
        if self.config_manager is None:
            self.load_config()
        return self.config_manager.get(key_path, default)

    def storage_config(self) -> StorageConfig:
        if self.config_manager is None:
            self.load_config()
        return self.config_manager.storage_config()

    def build_orchestrator(self, dry_run: bool = False) -> UploadOrchestrator:
        """Create an orchestrator backed by HandCash or, for dry runs, a simulated wallet."""
        config = self.storage_config()
        if dry_run or self.get_config('cli.dry_run', False):
            wallet = SimulatedWallet(balance=self.get_config('cli.dry_run_balance', 100_000_000))
            self.logger.info("Dry run: payments are simulated")
        else:
            wallet = HandCashWallet(self.config_manager.wallet_config())
        return UploadOrchestrator(wallet, config=config, profile_provider=wallet)

    def output(self, data: Any, format_override: Optional[str] = None):
        """Output data in specified format."""
        format_type = format_override or self.output_format

        if format_type == "json":
            click.echo(json.dumps(data, indent=2, default=str))
        elif format_type == "yaml":
            click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))
        else:
            self._output_table(data)

    def _output_table(self, data: Any):
        """Output data as a plain key/value table."""
        if isinstance(data, dict):
            rows = [[key, self._format_value(value)] for key, value in _flatten(data)]
            click.echo(tabulate(rows, tablefmt="plain", disable_numparse=True))
        elif isinstance(data, list):
            rows = [[self._format_value(item)] for item in data]
            click.echo(tabulate(rows, tablefmt="plain", disable_numparse=True))
        else:
            click.echo(data)

    @staticmethod
    def _format_value(value: Any) -> str:
        if value is None:
            return "-"
        if isinstance(value, (list, tuple)):
            return "\n".join(str(item) for item in value) or "-"
        return str(value)


def _flatten(data: Dict[str, Any], prefix: str = "") -> List[Tuple[str, Any]]:
    """Nested mappings become dotted keys."""
    rows = []
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            rows.extend(_flatten(value, f"{name}."))
        else:
            rows.append((name, value))
    return rows


pass_context = click.make_pass_decorator(CLIContext, ensure=True)


def handle_cli_error(func):
    """Decorator to report storage errors without a traceback."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo("\nOperation cancelled by user.", err=True)
            sys.exit(130)
        except (StorageError, OSError) as e:
            ctx = click.get_current_context(silent=True)
            cli_ctx = ctx.find_object(CLIContext) if ctx else None

            click.echo(f"Error: {e}", err=True)
            if cli_ctx and cli_ctx.verbose >= 2:
                click.echo(traceback.format_exc(), err=True)
            else:
                click.echo("Use -vv for detailed error information.", err=True)
            sys.exit(1)

    return wrapper


def echo_progress(event) -> None:
    """Progress sink printing each event to stderr."""
    click.echo(f"[{event.status.value}] {event.message}", err=True)
