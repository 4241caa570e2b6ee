import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .cache_manager import CacheLayout, DirCache
from .cli_config import create_sample_config, get_config, load_config
from .dependency import MakeDependency
from .differ import get_updated_deps, rename_dependencies
from .error_handling import ErrorCategory, ErrorContext, ReleaseToolError, setup_error_handling
from .git_accessor import GitAccessor
from .origin_resolver import OriginResolver
from .parsers import parse_dependencies
from .release import ReleaseBuilder, load_release, mailmap_configs, parse_tag
from .reporting import DependencyReporter, dependencies_to_json
from .structured_logging import setup_logging
from .templates import DEFAULT_TEMPLATE_FILE, get_template, render

console = Console(stderr=True)


def configure(debug: bool = False) -> None:
    """Set up logging and error handling from the tool configuration."""
    config = get_config()
    level = "DEBUG" if debug else config.logging.log_level
    setup_logging(level, log_format=config.logging.log_format)
    handler = setup_error_handling(getattr(logging, level.upper(), logging.WARNING))

    def report_degraded(context: ErrorContext) -> None:
        console.print(f"⚠️  {context.message}", style="yellow")

    handler.register_callback(report_degraded, ErrorCategory.NETWORK)
    handler.register_callback(report_degraded, ErrorCategory.GIT)


def open_cache_layout(cache_dir: Optional[str]) -> CacheLayout:
    directory = cache_dir or get_config().cache.directory
    if not directory:
        return CacheLayout()
    try:
        return CacheLayout(Path(directory).expanduser().absolute())
    except OSError as e:
        raise click.ClickException(f"unable to use cache dir: {e}")


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    release-tool: release notes from git history.

    This tool should be run from the root of the project repository for a
    new release.
    """
    if version:
        console.print(f"release-tool version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("release_file", required=False)
@click.option(
    "--dry",
    "-n",
    is_flag=True,
    help="Run as a dry run and print the release notes to stdout",
)
@click.option("--debug", "-d", is_flag=True, help="Show debug output")
@click.option("--tag", "-t", help="Tag name for the release, defaults to release file name")
@click.option(
    "--template",
    "template_path",
    default=DEFAULT_TEMPLATE_FILE,
    show_default=True,
    help="Template filepath to use in place of the default",
)
@click.option("--linkify", "-l", is_flag=True, help="Add links to changelog")
@click.option("--gfm", "-g", is_flag=True, help="Use GitHub Flavored Markdown links")
@click.option(
    "--cache",
    "cache_dir",
    envvar="RELEASE_TOOL_CACHE",
    type=click.Path(file_okay=False),
    help="Cache directory for static remote resources",
)
@click.option(
    "--output-file",
    "-o",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the release notes to a file",
)
def notes(
    release_file: Optional[str],
    dry: bool,
    debug: bool,
    tag: Optional[str],
    template_path: str,
    linkify: bool,
    gfm: bool,
    cache_dir: Optional[str],
    output_file: Optional[str],
) -> None:
    """
    Generate release notes for RELEASE_FILE.

    Examples:

      release-tool notes -n releases/v1.2.0.toml

      release-tool notes -l -g --cache ~/.cache/release-tool releases/v1.2.0.toml
    """
    configure(debug)
    config = get_config()

    try:
        tag = tag or parse_tag(release_file or "")
        release = load_release(release_file)

        console.print(f"Welcome to the {release.project_name} release tool...", style="dim")

        git = GitAccessor(configs=mailmap_configs(config.git.mailmap_file))
        layout = open_cache_layout(cache_dir)

        with ReleaseBuilder(git, layout, linkify=linkify, gfm=gfm) as builder:
            builder.build(release, tag)

        console.print(
            f"creating new release {tag} with {len(release.changes[0].changes)} new changes...",
            style="dim",
        )

        template = get_template(template_path)

        if dry or output_file:
            text = render(template, release)
            if dry:
                click.echo(text, nl=False)
            if output_file:
                Path(output_file).write_text(text, encoding="utf-8")
                console.print(f"✅ Release notes saved to {output_file}", style="green")

    except ReleaseToolError as e:
        raise click.ClickException(str(e))

    console.print("release complete!", style="green")


@cli.command()
@click.argument("previous")
@click.argument("current")
@click.option(
    "--release-file",
    "-r",
    type=click.Path(exists=True, dir_okay=False),
    help="Release file providing rename_deps, ignore_deps and make_deps",
)
@click.option("--ignore", "-i", multiple=True, help="Dependency name to ignore (repeatable)")
@click.option(
    "--output-format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
)
@click.option("--cache", "cache_dir", envvar="RELEASE_TOOL_CACHE", type=click.Path(file_okay=False))
@click.option("--debug", "-d", is_flag=True, help="Show debug output")
def deps(
    previous: str,
    current: str,
    release_file: Optional[str],
    ignore: List[str],
    output_format: str,
    cache_dir: Optional[str],
    debug: bool,
) -> None:
    """Show the dependencies updated between PREVIOUS and CURRENT."""
    configure(debug)

    try:
        ignored = list(ignore)
        renames = {}
        make_deps: List[MakeDependency] = []
        if release_file:
            release = load_release(release_file)
            ignored.extend(release.ignore_deps)
            renames = release.rename_deps
            make_deps = list(release.make_deps.values())

        git = GitAccessor()
        layout = open_cache_layout(cache_dir)
        cache = layout.object_cache()

        current_deps = parse_dependencies(git, current, make_deps)
        previous_deps = parse_dependencies(git, previous, make_deps)
        rename_dependencies(previous_deps, renames)

        with OriginResolver(cache, git) as resolver:
            updated = get_updated_deps(previous_deps, current_deps, ignored, cache, resolver)

    except ReleaseToolError as e:
        raise click.ClickException(str(e))

    if output_format.lower() == "json":
        click.echo(dependencies_to_json(updated))
    else:
        DependencyReporter(Console()).print_updates(updated, previous, current)


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".release-tool.toml",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        config_path.write_text(create_sample_config(), encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")


@config.command("show")
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Show the settings loaded from this file",
)
def config_show(config_file: Optional[str]):
    """Show the effective configuration."""
    current = load_config(Path(config_file)) if config_file else get_config()
    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))
    console.print_json(data=current.to_dict())


@cli.group()
def cache():
    """Remote resolution cache commands."""
    pass


def _object_cache(cache_dir: Optional[str]) -> Optional[DirCache]:
    layout = open_cache_layout(cache_dir)
    if layout.root is None:
        console.print("📭 No cache directory configured", style="yellow")
        return None
    return DirCache(layout.object_dir)


@cache.command("stats")
@click.option("--cache", "cache_dir", envvar="RELEASE_TOOL_CACHE", type=click.Path(file_okay=False))
def cache_stats(cache_dir: Optional[str]):
    """Show cache size."""
    dir_cache = _object_cache(cache_dir)
    if dir_cache is None:
        return
    DependencyReporter(console).print_cache_stats(dir_cache.entries(), dir_cache.size_bytes())


@cache.command("clear")
@click.option("--cache", "cache_dir", envvar="RELEASE_TOOL_CACHE", type=click.Path(file_okay=False))
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt")
def cache_clear(cache_dir: Optional[str], confirm: bool):
    """Remove all remote resolution entries."""
    dir_cache = _object_cache(cache_dir)
    if dir_cache is None:
        return

    current_size = dir_cache.entries()
    if current_size == 0:
        console.print("📭 Cache is already empty", style="yellow")
        return

    if not confirm:
        if not click.confirm(f"Are you sure you want to clear {current_size} cache entries?"):
            console.print("❌ Cache clear cancelled")
            return

    cleared = dir_cache.clear()
    console.print(f"✅ Cleared {cleared} cache entries", style="green")


def main() -> None:
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n⚠️  Interrupted by user", style="yellow")
        sys.exit(130)


if __name__ == "__main__":
    main()
