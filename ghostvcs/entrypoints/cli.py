"""ghostvcs CLI entrypoint.

Command-line interface for inspecting repositories and taking ghost snapshots.
"""

from __future__ import annotations

import functools
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING

import click

from ghostvcs.core.errors import GhostCliError, repo_not_found_error
from ghostvcs.domain.entities import CreateSnapshotOptions, Snapshot
from ghostvcs.domain.exceptions import GhostVcsError
from ghostvcs.version import __version__

if TYPE_CHECKING:
    from ghostvcs.adapters.factory import BackendFactory
    from ghostvcs.domain.config import GhostConfig
    from ghostvcs.domain.entities import DetectedRevisionControl

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def handle_cli_errors(command_name: str):
    """Decorator to handle common CLI errors.

    GhostCliError propagates unchanged; domain errors are converted with
    their hint; anything else becomes a generic error (with traceback in
    verbose mode).

    Args:
        command_name: Name of the command for error messages.

    Returns:
        Decorated function with error handling.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except GhostCliError:
                raise
            except GhostVcsError as e:
                raise GhostCliError(e.message, hint=e.hint) from e
            except ValueError as e:
                raise GhostCliError(str(e)) from e
            except Exception as e:
                ctx = click.get_current_context()
                if ctx.obj.get("verbose", False):
                    import traceback

                    traceback.print_exc()
                raise GhostCliError(
                    f"Unexpected error in {command_name}: {e}",
                    hint="Run with --verbose for more details",
                ) from e

        return wrapper

    return decorator


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def _load_config(repo_root: Path | None) -> GhostConfig:
    """Load merged global and repository-local configuration."""
    from ghostvcs.adapters.factory import ConfigFactory

    return ConfigFactory().create_config_provider().load(repo_root)


def _detect() -> tuple[DetectedRevisionControl | None, GhostConfig]:
    from ghostvcs.core.detection import detect_revision_control

    detected = detect_revision_control(Path.cwd())
    config = _load_config(detected.root if detected else None)
    return detected, config


def _require_repo() -> tuple[DetectedRevisionControl, GhostConfig]:
    """Detect the repository for the working directory or exit with error.

    Raises:
        GhostCliError: If no repository governs the working directory.
    """
    detected, config = _detect()
    if detected is None:
        repo_not_found_error(Path.cwd())
    return detected, config


def _backend_factory(config: GhostConfig) -> BackendFactory:
    from ghostvcs.adapters.factory import BackendFactory

    return BackendFactory(config)


def _status(ctx: click.Context, message: str) -> None:
    """Print a progress line on stderr unless --quiet."""
    if not ctx.obj.get("quiet", False):
        click.echo(message, err=True)


@click.group()
@click.version_option(version=__version__, prog_name="ghostvcs")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress non-essential output.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool) -> None:
    """ghostvcs - Reversible snapshots and metadata for Git and Darcs checkouts."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose, quiet)


@cli.command()
@click.pass_context
@handle_cli_errors("detect")
def detect(ctx: click.Context) -> None:
    """Show which revision control system governs the current directory."""
    detected, config = _detect()
    if detected is None:
        if config.cli.skip_repo_check:
            click.echo("none")
            return
        repo_not_found_error(Path.cwd(), skippable=True)

    click.echo(f"{detected.kind.value}\t{detected.root}")
    if ctx.obj.get("verbose", False):
        caps = detected.capabilities
        click.echo(f"diffs: {caps.supports_diffs}, snapshots: {caps.supports_snapshots}", err=True)


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
@handle_cli_errors("info")
def info(ctx: click.Context, json_output: bool) -> None:
    """Show commit, branch and remote of the current repository."""
    from ghostvcs.core.metadata.pipeline import MetadataPipeline

    detected, config = _require_repo()
    pipeline = MetadataPipeline(config, _backend_factory(config))
    metadata = pipeline.collect_git_info(detected.root)
    if metadata is None:
        repo_not_found_error(detected.root)

    if json_output:
        click.echo(json.dumps({"kind": detected.kind.value, **asdict(metadata)}, indent=2))
        return

    click.echo(f"{detected.kind.display_name} repository at {detected.root}")
    click.echo(f"  commit: {metadata.commit_id or '-'}")
    click.echo(f"  branch: {metadata.branch or '-'}")
    click.echo(f"  remote: {metadata.remote_url or '-'}")


@cli.command(name="log")
@click.option(
    "--limit",
    "-n",
    type=click.IntRange(min=1),
    default=None,
    help="Number of entries (default: [history] limit).",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
@handle_cli_errors("log")
def log_command(ctx: click.Context, limit: int | None, json_output: bool) -> None:
    """List recent commits or patches, newest first."""
    from ghostvcs.core.metadata.pipeline import MetadataPipeline

    detected, config = _require_repo()
    pipeline = MetadataPipeline(config, _backend_factory(config))
    entries = pipeline.recent_history(detected.root, limit)

    if json_output:
        click.echo(json.dumps([asdict(entry) for entry in entries], indent=2))
        return
    for entry in entries:
        click.echo(f"{entry.id[:12]}  {entry.timestamp}  {entry.subject}")


@cli.command()
@click.pass_context
@handle_cli_errors("branches")
def branches(ctx: click.Context) -> None:
    """List local branches, default branch first (current marked with *)."""
    from ghostvcs.core.metadata.pipeline import MetadataPipeline

    detected, config = _require_repo()
    pipeline = MetadataPipeline(config, _backend_factory(config))
    current = pipeline.current_branch_name(detected.root)
    for name in pipeline.local_branches(detected.root):
        marker = "*" if name == current else " "
        click.echo(f"{marker} {name}")


@cli.command()
@click.pass_context
@handle_cli_errors("diff")
def diff(ctx: click.Context) -> None:
    """Show uncommitted changes, including untracked files."""
    from ghostvcs.core.metadata.pipeline import MetadataPipeline

    detected, config = _require_repo()
    pipeline = MetadataPipeline(config, _backend_factory(config))
    _, text = pipeline.repo_diff(detected.root)
    click.echo(text, nl=False)


@cli.command(name="diff-remote")
@click.pass_context
@handle_cli_errors("diff-remote")
def diff_remote(ctx: click.Context) -> None:
    """Diff the working tree against the closest point shared with a remote."""
    from ghostvcs.core.metadata.pipeline import MetadataPipeline

    detected, config = _require_repo()
    pipeline = MetadataPipeline(config, _backend_factory(config))
    result = pipeline.git_diff_to_remote(detected.root)
    _status(ctx, f"Base: {result.base_reference}")
    click.echo(result.diff_text, nl=False)


@cli.command()
@click.option("--message", "-m", type=str, default=None, help="Snapshot message.")
@click.option(
    "--path",
    "paths",
    multiple=True,
    type=click.Path(path_type=Path),
    help="Restrict the snapshot to this path (repeatable).",
)
@click.option(
    "--force-include",
    multiple=True,
    help="Capture ignored files matching this pattern (repeatable).",
)
@click.pass_context
@handle_cli_errors("snapshot")
def snapshot(
    ctx: click.Context,
    message: str | None,
    paths: tuple[Path, ...],
    force_include: tuple[str, ...],
) -> None:
    """Capture the working tree as a ghost snapshot and print its id."""
    from ghostvcs.core.progress import progress_context
    from ghostvcs.core.snapshots.snapshot_manager import SnapshotManager

    detected, config = _require_repo()
    backend = _backend_factory(config).create_backend(detected)
    cwd = Path.cwd()
    options = CreateSnapshotOptions(
        repo_path=detected.root,
        message=message or config.snapshot.message,
        force_include=force_include,
        paths=tuple(p if p.is_absolute() else cwd / p for p in paths),
    )
    with progress_context(quiet_mode=ctx.obj.get("quiet", False)) as progress:
        created = SnapshotManager(backend).create_snapshot(options, progress)
    click.echo(created.id)
    if created.parent:
        _status(ctx, f"Parent: {created.parent}")


@cli.command()
@click.argument("snapshot_id", type=str)
@click.option(
    "--path",
    "paths",
    multiple=True,
    type=click.Path(path_type=Path),
    help="Only restore this path (repeatable).",
)
@click.pass_context
@handle_cli_errors("restore")
def restore(ctx: click.Context, snapshot_id: str, paths: tuple[Path, ...]) -> None:
    """Write a snapshot's files back onto the working tree.

    Files created after the snapshot are left untouched.
    """
    from ghostvcs.core.progress import progress_context
    from ghostvcs.core.snapshots.snapshot_manager import SnapshotManager
    from ghostvcs.shared.paths import relative_scope

    detected, config = _require_repo()
    backend = _backend_factory(config).create_backend(detected)
    cwd = Path.cwd()
    scope = relative_scope(
        detected.root, [p if p.is_absolute() else cwd / p for p in paths]
    )
    handle = Snapshot(id=snapshot_id, kind=detected.kind, paths=scope)
    with progress_context(quiet_mode=ctx.obj.get("quiet", False)) as progress:
        SnapshotManager(backend).restore_snapshot(detected.root, handle, progress)
    _status(ctx, f"Restored {snapshot_id}")


def _config_target(use_global: bool) -> Path:
    """Config file a write should go to: global, or local to the repository."""
    from ghostvcs.shared.config_io import get_global_config_path, get_local_config_path

    if use_global:
        return get_global_config_path()
    detected, _ = _require_repo()
    return get_local_config_path(detected.root)


@cli.group()
def config() -> None:
    """Inspect and edit ghostvcs configuration."""


@config.command(name="path")
@click.option("--global", "-g", "show_global", is_flag=True, help="Show global config path.")
@click.option("--local", "-l", "show_local", is_flag=True, help="Show local config path.")
@click.pass_context
@handle_cli_errors("config path")
def config_path(ctx: click.Context, show_global: bool, show_local: bool) -> None:
    """Show configuration file paths."""
    from ghostvcs.core.detection import detect_revision_control
    from ghostvcs.shared.config_io import get_global_config_path, get_local_config_path

    global_path = get_global_config_path()
    detected = detect_revision_control(Path.cwd())
    local_path = get_local_config_path(detected.root) if detected else None

    if show_global:
        click.echo(global_path)
        return
    if show_local:
        if local_path is None:
            repo_not_found_error(Path.cwd())
        click.echo(local_path)
        return

    exists = "exists" if global_path.exists() else "not found"
    click.echo(f"Global: {global_path} ({exists})")
    if local_path is not None:
        exists = "exists" if local_path.exists() else "not found"
        click.echo(f"Local:  {local_path} ({exists})")


@config.command(name="show")
@click.pass_context
@handle_cli_errors("config show")
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration as TOML."""
    from ghostvcs.shared.config_io import dumps_config

    _, config = _detect()
    click.echo(dumps_config(config), nl=False)


@config.command(name="init")
@click.option("--global", "-g", "use_global", is_flag=True, help="Write the global config.")
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
@click.pass_context
@handle_cli_errors("config init")
def config_init(ctx: click.Context, use_global: bool, force: bool) -> None:
    """Write a commented config file holding the defaults."""
    from ghostvcs.shared.config_io import create_default_config_file

    target = _config_target(use_global)
    if target.exists() and not force:
        raise GhostCliError(
            f"Config file already exists: {target}",
            hint="Use --force to overwrite it",
        )
    create_default_config_file(target)
    _status(ctx, f"Wrote {target}")


@config.command(name="set")
@click.argument("key", type=str)
@click.argument("value", type=str)
@click.option("--global", "-g", "use_global", is_flag=True, help="Edit the global config.")
@click.pass_context
@handle_cli_errors("config set")
def config_set(ctx: click.Context, key: str, value: str, use_global: bool) -> None:
    """Set KEY (section.key form, e.g. history.limit) to VALUE."""
    from ghostvcs.adapters.config.toml_config_provider import GLOBAL_ONLY_KEYS
    from ghostvcs.shared.config_io import set_config_value

    section, _, name = key.partition(".")
    if not use_global and name in GLOBAL_ONLY_KEYS.get(section, ()):
        raise GhostCliError(
            f"{key} can only be set in the global config",
            hint=f"Use: ghostvcs config set --global {key} VALUE",
        )
    target = _config_target(use_global)
    set_config_value(target, key, value)
    _status(ctx, f"Set {key} in {target}")


def main() -> int:
    """Main entrypoint for the CLI."""
    try:
        cli(obj={})
        return 0
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
