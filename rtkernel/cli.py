"""
Command-line interface for the rtkernel solution.
"""

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from rtkernel import __version__
from rtkernel.catalog import DebianCatalog, VersionCatalog
from rtkernel.common import download_file, setup_logging
from rtkernel.config import RtKernelConfig
from rtkernel.config_file import apply_config_edit
from rtkernel.errors import RtKernelError, SelectionCancelled
from rtkernel.links import build_links
from rtkernel.models import DownloadLink, EditOperation, LinkSet, ResolvedVersions
from rtkernel.selector import RichPromptSelector, candidates_from
from rtkernel.versions import resolve_from_patch

console = Console()


def print_banner():
    """Print application banner."""
    console.print(Panel.fit(
        f"[bold blue]PREEMPT_RT Kernel Resolver[/bold blue] v{__version__}\n"
        "[dim]Matching rt patches, kernel releases and download links[/dim]",
        border_style="blue",
    ))


def _config(ctx) -> RtKernelConfig:
    return ctx.obj.get("config") or RtKernelConfig.from_env()


def _selector(ctx):
    return ctx.obj.get("selector") or RichPromptSelector(console)


def _fail(ctx, e: Exception):
    console.print(f"[red]Error: {escape(str(e))}[/red]")
    if ctx.obj.get("verbose"):
        console.print_exception()
    sys.exit(1)


def _print_resolved(resolved: ResolvedVersions, links: LinkSet):
    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column(style="cyan")
    table.add_row("rt patch", resolved.patch.value)
    table.add_row("kernel", resolved.kernel.value)
    table.add_row("minor", resolved.minor.value)
    table.add_row("major tag", resolved.major_tag.value)
    for name, url in links.as_dict().items():
        table.add_row(name, url)
    console.print(table)


def _download_all(links: List[DownloadLink], output: Path, timeout: int) -> List[Path]:
    downloaded = []
    for link in links:
        path = download_file(link.url, output, timeout=timeout)
        if path is None:
            raise RtKernelError(f"Download failed: {link.url}")
        downloaded.append(path)
    return downloaded


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def main(ctx, verbose: bool, quiet: bool):
    """
    PREEMPT_RT kernel resolver.

    Finds matching rt patch and kernel releases, builds their download links
    and edits kernel build configurations.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    config = _config(ctx)
    ctx.obj["config"] = config
    setup_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        log_file=config.log_file,
    )

    if not quiet:
        print_banner()


@main.command()
@click.option("--minor", "-m", help="List the rt patches of this minor version (e.g. 5.10)")
@click.pass_context
def versions(ctx, minor: Optional[str]):
    """
    List rt minor versions, or the rt patches of one minor version.

    Examples:

        rt-kernel versions

        rt-kernel versions --minor 5.10
    """
    catalog = VersionCatalog(_config(ctx), ctx.obj.get("fetcher"))

    try:
        if minor:
            candidates = catalog.list_full_patch_versions(minor.strip())
        else:
            candidates = catalog.list_minor_patch_versions()
    except RtKernelError as e:
        _fail(ctx, e)

    for value in candidates.values:
        click.echo(value)


@main.command()
@click.pass_context
def current(ctx):
    """Show the version of the running kernel."""
    catalog = VersionCatalog(_config(ctx), ctx.obj.get("fetcher"))
    try:
        click.echo(catalog.current_system_kernel_version().value)
    except RtKernelError as e:
        _fail(ctx, e)


@main.command()
@click.argument("patch")
@click.option("--json", "as_json", is_flag=True, help="Print versions and links as JSON")
@click.pass_context
def resolve(ctx, patch: str, as_json: bool):
    """
    Derive the kernel release and download links of an rt patch.

    Examples:

        rt-kernel resolve 5.10.78-rt55
    """
    try:
        resolved = resolve_from_patch(patch.strip())
        links = build_links(resolved, _config(ctx))
    except RtKernelError as e:
        _fail(ctx, e)

    if as_json:
        click.echo(json.dumps({**resolved.as_dict(), **links.as_dict()}, indent=2))
    else:
        _print_resolved(resolved, links)


@main.command()
@click.option("--download", "-d", "download_dir", type=click.Path(file_okay=False),
              help="Download the kernel, patch and signatures into this directory")
@click.pass_context
def select(ctx, download_dir: Optional[str]):
    """
    Interactively choose an rt patch and show its download links.
    """
    catalog = VersionCatalog(_config(ctx), ctx.obj.get("fetcher"))
    selector = _selector(ctx)

    try:
        minors = catalog.list_minor_patch_versions()
        minor = selector.choose(
            candidates_from(minors), "PREEMPT_RT minor versions"
        ).require("minor version")

        patches = catalog.list_full_patch_versions(minor)
        patch = selector.choose(
            candidates_from(patches), f"PREEMPT_RT patches for {minor}"
        ).require("patch version")

        resolved = resolve_from_patch(patch)
        links = build_links(resolved, _config(ctx))
        _print_resolved(resolved, links)

        if download_dir:
            for path in _download_all(
                links.artifacts(), Path(download_dir), _config(ctx).network_timeout
            ):
                console.print(f"[green]Downloaded {path}[/green]")
    except SelectionCancelled as e:
        console.print(f"[yellow]{e}[/yellow]")
    except RtKernelError as e:
        _fail(ctx, e)


@main.group(name="config")
def config_group():
    """Edit KEY=VALUE build configuration files."""
    pass


@config_group.command(name="set")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.argument("key")
@click.argument("value")
@click.option("--backup-dir", type=click.Path(file_okay=False),
              help="Keep a copy of the original file in this directory")
@click.pass_context
def config_set(ctx, path: str, key: str, value: str, backup_dir: Optional[str]):
    """
    Replace the value of KEY. VALUE is written verbatim, include quotes if needed.

    Examples:

        rt-kernel config set .config CONFIG_SYSTEM_TRUSTED_KEYS '""'
    """
    try:
        changed = apply_config_edit(
            path, key, EditOperation.REPLACE, value,
            backup_dir=Path(backup_dir) if backup_dir else None,
        )
    except (RtKernelError, ValueError, OSError) as e:
        _fail(ctx, e)

    if changed:
        console.print(f"[green]Set {key}={escape(value)}[/green]")
    else:
        console.print(f"[yellow]{key} already set[/yellow]")


@config_group.command(name="comment-out")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.argument("key")
@click.option("--backup-dir", type=click.Path(file_okay=False),
              help="Keep a copy of the original file in this directory")
@click.pass_context
def config_comment_out(ctx, path: str, key: str, backup_dir: Optional[str]):
    """Comment out KEY. Does nothing if it is already commented out."""
    try:
        changed = apply_config_edit(
            path, key, EditOperation.COMMENT_OUT,
            backup_dir=Path(backup_dir) if backup_dir else None,
        )
    except (RtKernelError, ValueError, OSError) as e:
        _fail(ctx, e)

    if changed:
        console.print(f"[green]Commented out {key}[/green]")
    else:
        console.print(f"[yellow]{key} already commented out[/yellow]")


@main.group()
def debian():
    """Debian packages of PREEMPT_RT kernels."""
    pass


@debian.command(name="packages")
@click.option("--arch", help="dpkg architecture (detected by default)")
@click.pass_context
def debian_packages(ctx, arch: Optional[str]):
    """List the rt kernel package of each Debian release of this system."""
    catalog = DebianCatalog(_config(ctx), ctx.obj.get("fetcher"))

    try:
        architecture = arch or catalog.architecture()
        packages = catalog.available_packages(catalog.debian_versions(), architecture)
    except RtKernelError as e:
        _fail(ctx, e)

    table = Table(title=f"PREEMPT_RT packages ({architecture})")
    table.add_column("Release", style="cyan")
    table.add_column("Package")
    for package in packages:
        table.add_row(package.codename, package.name)
    console.print(table)


@debian.command(name="mirrors")
@click.argument("codename")
@click.option("--arch", help="dpkg architecture (detected by default)")
@click.option("--package", "-p", help="Package name (the current rt package by default)")
@click.pass_context
def debian_mirrors(ctx, codename: str, arch: Optional[str], package: Optional[str]):
    """List the download mirrors of the rt kernel package of a release."""
    catalog = DebianCatalog(_config(ctx), ctx.obj.get("fetcher"))

    try:
        architecture = arch or catalog.architecture()
        package = package or catalog.preemptrt_package(codename, architecture)
        links = catalog.download_locations(codename, architecture, package)
    except RtKernelError as e:
        _fail(ctx, e)

    for link in links:
        click.echo(link.url)


@debian.command(name="select")
@click.option("--arch", help="dpkg architecture (detected by default)")
@click.option("--download", "-d", "download_dir", type=click.Path(file_okay=False),
              help="Download the selected package into this directory")
@click.pass_context
def debian_select(ctx, arch: Optional[str], download_dir: Optional[str]):
    """
    Interactively choose a Debian rt kernel package and a download mirror.
    """
    catalog = DebianCatalog(_config(ctx), ctx.obj.get("fetcher"))
    selector = _selector(ctx)

    try:
        architecture = arch or catalog.architecture()
        packages = catalog.available_packages(catalog.debian_versions(), architecture)
        codename = selector.choose(
            [(p.codename, p.name) for p in packages],
            "Select the desired PREEMPT_RT kernel version",
        ).require("Debian release")
        package = next(p for p in packages if p.codename == codename)

        links = catalog.download_locations(codename, architecture, package.name)
        url = selector.choose(
            [(link.url, link.filename) for link in links],
            "Select a download server",
        ).require("download server")
        link = next(link for link in links if link.url == url)

        console.print(f"Package: [cyan]{link.filename}[/cyan]")
        click.echo(f"URL:     {link.url}")

        if download_dir:
            for path in _download_all([link], Path(download_dir), _config(ctx).network_timeout):
                console.print(f"[green]Downloaded {path}[/green]")
    except SelectionCancelled as e:
        console.print(f"[yellow]{e}[/yellow]")
    except RtKernelError as e:
        _fail(ctx, e)


if __name__ == "__main__":
    main()
