"""CLI interface for pygrive."""

import logging
from pathlib import Path
from typing import Any, Optional

import click
from rich.tree import Tree

from .api import DriveClient
from .config import config
from .exceptions import GriveAPIError, GriveError
from .models import RemoteNode
from .output import OutputFormatter
from .store import ROOT_ID, MemoryStore, RemoteStore
from .sync import PathResolver, RemoteTreeMirror, SyncEngine

logger = logging.getLogger(__name__)


def _make_store(ctx: Any, dry_run: bool = False) -> RemoteStore:
    """Build the remote store for a command, exiting when not configured."""
    out: OutputFormatter = ctx.obj["out"]
    if dry_run:
        out.warning("Dry run: using an empty in-memory remote store")
        return MemoryStore(store_content=False)

    access_token = ctx.obj.get("access_token")
    if not access_token and not config.is_configured():
        out.error(
            "No credentials configured. Run 'pygrive init' or set "
            "PYGRIVE_ACCESS_TOKEN."
        )
        ctx.exit(1)
    return DriveClient(access_token=access_token)


def _node_label(node: RemoteNode) -> str:
    if node.is_directory:
        return f"[bold blue]{node.title}/[/bold blue] [dim]({node.id})[/dim]"
    return f"{node.title} [dim]({node.mime_type}, {node.id})[/dim]"


def _build_tree(
    mirror: RemoteTreeMirror, node: RemoteNode, branch: Tree, depth: Optional[int]
) -> None:
    if depth is not None and depth <= 0:
        return
    children = sorted(
        mirror.children_of(node), key=lambda n: (not n.is_directory, n.title)
    )
    for child in children:
        sub = branch.add(_node_label(child))
        if child.is_directory:
            _build_tree(mirror, child, sub, None if depth is None else depth - 1)


def _tree_to_dict(
    mirror: RemoteTreeMirror, node: RemoteNode, depth: Optional[int]
) -> dict[str, Any]:
    data = node.to_dict()
    if node.is_directory and (depth is None or depth > 0):
        data["children"] = [
            _tree_to_dict(mirror, child, None if depth is None else depth - 1)
            for child in mirror.children_of(node)
        ]
    return data


@click.group()
@click.option(
    "--access-token",
    "-t",
    envvar="PYGRIVE_ACCESS_TOKEN",
    help="OAuth2 access token",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pygrive")
@click.pass_context
def main(
    ctx: Any,
    access_token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pygrive - Mirror new local files to a remote drive."""
    ctx.ensure_object(dict)
    ctx.obj["access_token"] = access_token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pygrive").setLevel(logging.DEBUG)
    elif quiet:
        logging.basicConfig(level=logging.WARNING)
    else:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(asctime)s %(message)s",
            datefmt="%H:%M:%S",
        )
        # Sync progress (created, skipped, retrieved) is reported at INFO
        logging.getLogger("pygrive").setLevel(logging.INFO)


@main.command()
@click.option("--client-id", prompt="OAuth2 client id", help="OAuth2 client id")
@click.option(
    "--client-secret",
    prompt="OAuth2 client secret",
    hide_input=True,
    help="OAuth2 client secret",
)
@click.option(
    "--refresh-token",
    prompt="OAuth2 refresh token",
    hide_input=True,
    help="OAuth2 refresh token",
)
@click.option(
    "--directory",
    "-d",
    type=click.Path(file_okay=False),
    default=None,
    help="Local directory to watch by default",
)
@click.pass_context
def init(
    ctx: Any,
    client_id: str,
    client_secret: str,
    refresh_token: str,
    directory: Optional[str],
) -> None:
    """Initialize pygrive configuration.

    Stores your OAuth2 credentials in ~/.config/pygrive/<env>.json.
    """
    out: OutputFormatter = ctx.obj["out"]

    access_token = None
    out.info("Validating credentials...")
    try:
        client = DriveClient(
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
        )
        with client:
            access_token = client.refresh_access_token()
        out.success("✓ Credentials are valid")
    except GriveError as e:
        out.error(f"Credential validation failed: {e}")
        if not click.confirm("Save credentials anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    config_path = config.save_credentials(
        client_id=client_id,
        client_secret=client_secret,
        refresh_token=refresh_token,
        access_token=access_token,
        directory=str(Path(directory).absolute()) if directory else None,
    )
    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config_path)),
        ],
    )


@main.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False),
    required=False,
)
@click.option(
    "--workers",
    "-j",
    type=int,
    default=4,
    help="Number of worker threads (default: 4)",
)
@click.option(
    "--no-initial-scan",
    is_flag=True,
    help="Do not upload files that already exist when watching starts",
)
@click.option(
    "--strict-paths",
    is_flag=True,
    help="Fail instead of warning when remote labels are ambiguous",
)
@click.option("--ignore", "-i", multiple=True, help="Glob pattern to ignore")
@click.option(
    "--exclude-dot-files", is_flag=True, help="Skip hidden files and directories"
)
@click.option(
    "--dry-run", is_flag=True, help="Use an in-memory remote store (no uploads)"
)
@click.pass_context
def watch(
    ctx: Any,
    directory: Optional[str],
    workers: int,
    no_initial_scan: bool,
    strict_paths: bool,
    ignore: tuple[str, ...],
    exclude_dot_files: bool,
    dry_run: bool,
) -> None:
    """Watch DIRECTORY and upload newly created files.

    DIRECTORY defaults to the directory stored in the configuration.
    """
    out: OutputFormatter = ctx.obj["out"]

    local_dir = Path(directory) if directory else config.directory
    if local_dir is None:
        out.error("No directory given and none configured")
        ctx.exit(1)
    if workers < 1:
        out.error("Number of workers must be at least 1")
        ctx.exit(1)

    store = _make_store(ctx, dry_run)
    engine = SyncEngine(
        store,
        local_dir,
        max_workers=workers,
        initial_scan=not no_initial_scan,
        strict_paths=strict_paths,
        ignore_patterns=list(ignore),
        exclude_dot_files=exclude_dot_files,
    )

    out.info(f"Mirroring {Path(local_dir).absolute()} (Ctrl-C to stop)")
    try:
        engine.run_forever()
    except (GriveError, ValueError) as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        _close_store(store)

    out.print_summary(
        "Sync Summary",
        [(outcome, str(count)) for outcome, count in engine.stats.items() if count],
    )


def _close_store(store: RemoteStore) -> None:
    close = getattr(store, "close", None)
    if callable(close):
        close()


def _load_mirror(ctx: Any) -> RemoteTreeMirror:
    """Hydrate a full mirror of the remote tree and release the client."""
    out: OutputFormatter = ctx.obj["out"]
    store = _make_store(ctx)
    try:
        mirror = RemoteTreeMirror(store.get_node(ROOT_ID), store)
        report = mirror.hydrate()
    except GriveAPIError as e:
        out.error(f"Could not load remote tree: {e}")
        ctx.exit(1)
    finally:
        _close_store(store)
    if not report.ok:
        out.warning(f"{len(report.failures)} folder(s) could not be listed")
    return mirror


@main.command()
@click.option("--depth", "-d", type=int, default=None, help="Maximum depth to show")
@click.pass_context
def tree(ctx: Any, depth: Optional[int]) -> None:
    """Show the remote folder tree."""
    out: OutputFormatter = ctx.obj["out"]
    mirror = _load_mirror(ctx)

    if out.json_output:
        out.output_json(_tree_to_dict(mirror, mirror.root, depth))
        return

    root = Tree(_node_label(mirror.root))
    _build_tree(mirror, mirror.root, root, depth)
    out.print_tree(root)
    out.info(f"{len(mirror) - 1} remote node(s)")


@main.command()
@click.argument("path")
@click.pass_context
def resolve(ctx: Any, path: str) -> None:
    """Find the remote node at label-path PATH (e.g. docs/2024/report.pdf)."""
    out: OutputFormatter = ctx.obj["out"]
    mirror = _load_mirror(ctx)

    try:
        result = PathResolver(mirror).resolve(path)
    except GriveError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(
            {
                "path": result.path,
                "found": result.found,
                "node": result.node.to_dict() if result.node else None,
                "closest_ancestor": {
                    "path": result.ancestor.path,
                    "depth": result.ancestor.depth,
                    "node": result.ancestor.node.to_dict(),
                },
            }
        )
    elif result.node is not None:
        node = result.node
        out.print_summary(
            f"/{result.path}",
            [
                ("ID", node.id),
                ("Type", "folder" if node.is_directory else node.mime_type),
                ("Parent", node.parent_id or "-"),
            ],
        )
    else:
        out.error(f"Not found: /{result.path}")
        out.print(
            f"Closest existing folder: /{result.ancestor.path} "
            f"(depth {result.ancestor.depth}, ID {result.ancestor.node.id})"
        )

    if not result.found:
        ctx.exit(1)


if __name__ == "__main__":
    main()
