"""
Shared CLI context for the Diploma Registry CLI

Holds the state every command needs: verbosity and logging, merged configuration,
output formatting and a lazily constructed registry manager.
"""

import functools
import logging
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from registry.activity import ActivityLogger
from registry.events import EventRecord
from registry.exceptions import RegistryError
from registry.keys import truncate
from registry.manager import RegistryManager
from registry.storage import RegistryStorage

from .config import ConfigurationManager
from .output import OutputFormatter


LOGGER_NAME = 'dipreg-cli'


class CLIContext:
    """Global CLI context for sharing state across commands."""

    def __init__(self):
        self.config_file: Optional[str] = None
        self.profile: Optional[str] = None
        self.data_dir: Optional[str] = None
        self.output_format: Optional[str] = None
        self.verbose: int = 0
        self.config_manager: Optional[ConfigurationManager] = None
        self.logger: logging.Logger = logging.getLogger(LOGGER_NAME)
        self._manager: Optional[RegistryManager] = None

    def setup_logging(self):
        """Configure logging based on verbosity level."""
        log_levels = {
            0: logging.WARNING,
            1: logging.INFO,
            2: logging.DEBUG
        }

        level = log_levels.get(min(self.verbose, 2), logging.DEBUG)

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

        # Registry core logs share the CLI handler
        for logger in (self.logger, logging.getLogger('registry')):
            for stale in list(logger.handlers):
                logger.removeHandler(stale)
            logger.addHandler(handler)
            logger.setLevel(level)

    def load_config(self):
        """Load merged configuration and apply command line overrides."""
        self.config_manager = ConfigurationManager(self.config_file, self.profile)
        self.config_manager.load()

        if self.data_dir:
            self.config_manager.set('registry.data_dir', self.data_dir)
        if not self.output_format:
            self.output_format = self.get_config('cli.output_format', 'table')

        self.logger.debug(f"Configuration sources: {self.config_manager.get_sources()}")

    def get_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value with fallback to default."""
        if self.config_manager is None:
            return default
        return self.config_manager.get(key, default)

    def output(self, data: Any, format_override: Optional[str] = None):
        """Output data in the selected format."""
        formatter = OutputFormatter(format_override or self.output_format or 'table')
        click.echo(formatter.format(data))

    def get_manager(self) -> RegistryManager:
        """Build the registry manager from configuration on first use."""
        if self._manager is None:
            data_dir = Path(self.get_config('registry.data_dir', 'registry_data'))
            storage = RegistryStorage(
                data_dir,
                compressed=self.get_config('registry.compressed', False),
                backup_count=self.get_config('registry.backup_count', 5),
                lock_timeout=self.get_config('registry.lock_timeout', 30.0),
                backup_on_commit=self.get_config('registry.backup_on_commit', False)
            )
            activity = ActivityLogger({
                'enabled': self.get_config('activity.enabled', True),
                'log_directory': self.get_config('activity.log_directory'),
                'max_memory_events': self.get_config('activity.max_memory_events', 10000)
            })
            self._manager = RegistryManager(
                storage=storage,
                activity_logger=activity,
                lock_timeout=self.get_config('registry.lock_timeout', 30.0)
            )
            self.logger.debug(f"Registry loaded from {data_dir}")
        return self._manager

    def resolve_caller(self, caller: Optional[str]) -> str:
        """Caller identity from --as, falling back to identity.default_caller."""
        caller = caller or self.get_config('identity.default_caller')
        if not caller:
            raise click.UsageError(
                "No caller identity. Pass --as IDENTITY or set identity.default_caller."
            )
        return caller

    def confirm(self, message: str, assume_yes: bool) -> None:
        """Ask for confirmation of a destructive action unless disabled."""
        if assume_yes or not self.get_config('cli.confirm_destructive', True):
            return
        click.confirm(message, abort=True)

    def event_rows(self, records: List[EventRecord]) -> List[Dict[str, Any]]:
        """Render event records, compactly for tables and in full otherwise."""
        if self.output_format != 'table':
            return [record.model_dump(mode='json') for record in records]

        rows = []
        for record in records:
            details = ", ".join(
                f"{field}={truncate(value) if isinstance(value, str) else value}"
                for field, value in record.payload.items()
            )
            rows.append({
                'sequence': record.sequence,
                'event': record.event_type.value,
                'recorded_at': record.recorded_at,
                'details': details
            })
        return rows


pass_context = click.make_pass_decorator(CLIContext, ensure=True)

# Exit codes
EXIT_FAILURE = 1
EXIT_REJECTED = 2
EXIT_INTERRUPTED = 130


def _report_error(message: str) -> None:
    ctx = None
    current = click.get_current_context(silent=True)
    if current is not None:
        ctx = current.find_object(CLIContext)

    click.echo(message, err=True)
    if ctx and ctx.verbose >= 2:
        click.echo(traceback.format_exc(), err=True)
    else:
        click.echo("Use -vv for detailed error information.", err=True)


def handle_cli_error(func):
    """
    Decorator to handle CLI errors gracefully.

    Registry rejections exit with code 2 and name their failure kind. Any other
    failure exits with code 1.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (click.ClickException, click.Abort, click.exceptions.Exit):
            raise
        except KeyboardInterrupt:
            click.echo("\nOperation cancelled by user.", err=True)
            sys.exit(EXIT_INTERRUPTED)
        except RegistryError as e:
            _report_error(f"Error [{e.code}]: {e}")
            sys.exit(EXIT_REJECTED)
        except Exception as e:
            _report_error(f"Error: {e}")
            sys.exit(EXIT_FAILURE)

    return wrapper
