"""
Helpers shared by the CLI commands.

Every command reads its settings from the environment (optionally loaded from
a .env file by the main group) and turns the errors that abort a run into a
message on stderr and exit code 1.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from ..utils.config import TrackerConfig


def load_config(commitments_dir: Optional[Path] = None) -> TrackerConfig:
    """
    Build and validate the run configuration.

    Args:
        commitments_dir: Overrides POLICYTRACKER_COMMITMENTS_DIR when given.

    Raises:
        ConfigurationError: If any setting is invalid.
    """
    overrides = {"commitments_dir": commitments_dir} if commitments_dir else {}
    config = TrackerConfig(**overrides)
    config.validate()
    return config


def fail(error: Exception) -> None:
    """Report a fatal error and exit with status 1."""
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


commitments_dir_option = click.option(
    "--commitments-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Commitment store directory (default: $POLICYTRACKER_COMMITMENTS_DIR or ./docs/commitments)",
)

today_option = click.option(
    "--today",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Reference date for new entries and the date sweep (YYYY-MM-DD, default: today)",
)
