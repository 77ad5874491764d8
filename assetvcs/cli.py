"""CLI interface for assetvcs."""

import logging
from concurrent.futures import Future
from pathlib import Path, PurePosixPath
from typing import Any, Optional, TypeVar

import click
from rich.progress import Progress, SpinnerColumn, TextColumn

from .api import VCSClient
from .backend import RemotePullClient, create_status_cache
from .config import config
from .exceptions import AssetVCSAPIError, AssetVCSError
from .groups import Asset
from .layers import Layer, LayerManager, LayerSynchronizer
from .output import OutputFormatter
from .scanner import DirectoryScanner
from .synchronizer import AssetsSynchronizer, SyncReport
from .utils import to_project_path

logger = logging.getLogger(__name__)

T = TypeVar("T")


@click.group()
@click.option("--api-key", "-k", envvar="ASSETVCS_API_KEY", help="API key")
@click.option("--api-url", envvar="ASSETVCS_API_URL", help="API base URL")
@click.option(
    "--project-root",
    "-p",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="ASSETVCS_PROJECT_ROOT",
    help="Project root folder (default: current directory)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="assetvcs")
@click.pass_context
def main(
    ctx: Any,
    api_key: Optional[str],
    api_url: Optional[str],
    project_root: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """assetvcs - Sync project assets with a remote version control service."""
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["api_url"] = api_url
    ctx.obj["project_root"] = project_root
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("assetvcs").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


def _project_root(ctx: Any) -> Path:
    return ctx.obj.get("project_root") or config.project_root


def _create_client(ctx: Any) -> VCSClient:
    return VCSClient(
        api_key=ctx.obj.get("api_key"),
        api_url=ctx.obj.get("api_url"),
        project_root=_project_root(ctx),
    )


def _wait(future: "Future[T]", description: str, out: OutputFormatter) -> T:
    """Block until future is done, showing a spinner unless output is quiet."""
    if out.quiet or out.json_output:
        return future.result()
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)
        return future.result()


def _print_sync_report(report: SyncReport, out: OutputFormatter) -> None:
    if not report.synced and not report.pulls:
        out.info("Everything is up to date.")
        return
    out.info(f"Synced {len(report.synced)} of {len(report.requested)} group(s)")
    if report.deleted:
        out.info(f"Removed {len(report.deleted)} remotely deleted group(s):")
        for path in report.deleted:
            out.print(f"  - {path}")
    if report.discovered:
        out.info(f"Pulled {len(report.discovered)} newly referenced file(s):")
        for path in report.discovered:
            out.print(f"  + {path}")
    out.success(f"✓ Sync finished ({len(report.pulls)} pull(s))")


@main.command()
@click.option(
    "--api-key",
    "-k",
    prompt="Enter your API key",
    help="API key",
)
@click.pass_context
def init(ctx: Any, api_key: str) -> None:
    """Initialize assetvcs configuration."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        out.info("Validating API key...")
        client = VCSClient(api_key=api_key, api_url=ctx.obj.get("api_url"))
        try:
            valid = client.validate_api_key()
        finally:
            client.close()
        if not valid:
            out.error("API key validation failed: Invalid API key")
            if not click.confirm("Save anyway?", default=False):
                out.warning("Configuration cancelled.")
                ctx.exit(1)
        else:
            out.success("✓ API key is valid")

        config.save_api_key(api_key)
        config_path = config.get_config_path()
        out.success(f"✓ Configuration saved successfully to {config_path}")
    except AssetVCSAPIError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def status(ctx: Any, paths: tuple[str, ...]) -> None:
    """Show the remote status of files.

    PATHS: Files, relative to the project root
    """
    out: OutputFormatter = ctx.obj["out"]
    root = _project_root(ctx)

    try:
        files = [to_project_path(path, root) for path in paths]
        client = _create_client(ctx)
        try:
            statuses = client.get_status(files)
        finally:
            client.close()
    except AssetVCSAPIError as e:
        out.error(f"API error: {e}")
        ctx.exit(1)
    except (AssetVCSError, ValueError) as e:
        out.error(f"Error: {e}")
        ctx.exit(1)

    cache = {path.casefold(): flags for path, flags in statuses.items()}
    rows = []
    for file in files:
        flags = cache.get(file.casefold())
        names = flags.to_names() if flags is not None else []
        rows.append((file, ", ".join(names) or "up to date"))
    out.output_table(["path", "status"], rows, title="Remote status")


@main.command()
@click.argument("assets", nargs=-1)
@click.option(
    "--folder",
    "-f",
    "folders",
    multiple=True,
    help="Folder to pull as a whole (can be given several times)",
)
@click.pass_context
def sync(ctx: Any, assets: tuple[str, ...], folders: tuple[str, ...]) -> None:
    """Sync assets and folders with the remote.

    ASSETS: Asset metadata files, relative to the project root

    Examples:
        assetvcs sync Objects/tree.cgf.cryasset
        assetvcs sync -f Levels/Forest
        assetvcs sync Objects/rock.cgf.cryasset -f Textures/Rocks
    """
    out: OutputFormatter = ctx.obj["out"]
    root = _project_root(ctx)

    if not assets and not folders:
        out.warning("Nothing to sync: give asset files or --folder.")
        return

    pull_client: Optional[RemotePullClient] = None
    client: Optional[VCSClient] = None
    try:
        loaded = [
            Asset.from_metadata_file(root, to_project_path(path, root))
            for path in assets
        ]
        client = _create_client(ctx)
        pull_client = RemotePullClient(client)
        status_cache = create_status_cache(client)
        synchronizer = AssetsSynchronizer(status_cache, pull_client, root)
        try:
            report = _wait(
                synchronizer.sync_assets(loaded, list(folders)), "Syncing...", out
            )
        finally:
            status_cache.close()

        if out.json_output:
            out.output_json(report.to_dict())
        else:
            _print_sync_report(report, out)

    except KeyboardInterrupt:
        out.warning("\nSync cancelled by user")
        ctx.exit(130)
    except AssetVCSAPIError as e:
        out.error(f"API error: {e}")
        ctx.exit(1)
    except Exception as e:
        out.error(f"Error: {e}")
        ctx.exit(1)
    finally:
        if pull_client is not None:
            pull_client.close()
        if client is not None:
            client.close()


@main.command(name="sync-layers")
@click.argument("layers", nargs=-1)
@click.option(
    "--folder",
    "-f",
    "folders",
    multiple=True,
    help="Folder to pull as a whole (can be given several times)",
)
@click.pass_context
def sync_layers(ctx: Any, layers: tuple[str, ...], folders: tuple[str, ...]) -> None:
    """Sync layer files and import layers that appeared in folders.

    LAYERS: Layer files (.lyr), relative to the project root

    Examples:
        assetvcs sync-layers -f Levels/Forest
        assetvcs sync-layers Levels/Forest/main.lyr -f Levels/Forest/Layers
    """
    out: OutputFormatter = ctx.obj["out"]
    root = _project_root(ctx)

    if not layers and not folders:
        out.warning("Nothing to sync: give layer files or --folder.")
        return

    pull_client: Optional[RemotePullClient] = None
    client: Optional[VCSClient] = None
    try:
        manager = LayerManager(root)
        loaded = []
        for path in layers:
            file_path = to_project_path(path, root)
            name = PurePosixPath(file_path).stem
            layer = Layer(name=name, file_path=file_path)
            manager.add_layer(layer)
            loaded.append(layer)

        client = _create_client(ctx)
        pull_client = RemotePullClient(client)
        status_cache = create_status_cache(client)
        layer_synchronizer = LayerSynchronizer(
            AssetsSynchronizer(status_cache, pull_client, root),
            DirectoryScanner(root),
            manager,
        )
        try:
            report = _wait(
                layer_synchronizer.sync_layers(loaded, list(folders)),
                "Syncing layers...",
                out,
            )
        finally:
            status_cache.close()

        if out.json_output:
            out.output_json(report.to_dict())
        else:
            _print_sync_report(report.sync, out)
            for path in report.imported:
                out.info(f"Imported layer {path}")
            for path in report.failed:
                out.warning(f"Could not import layer {path}")

    except KeyboardInterrupt:
        out.warning("\nSync cancelled by user")
        ctx.exit(130)
    except AssetVCSAPIError as e:
        out.error(f"API error: {e}")
        ctx.exit(1)
    except Exception as e:
        out.error(f"Error: {e}")
        ctx.exit(1)
    finally:
        if pull_client is not None:
            pull_client.close()
        if client is not None:
            client.close()


if __name__ == "__main__":
    main()
