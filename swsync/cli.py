"""CLI interface for pushing coded web apps to Studio Web."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import StudioWebClient
from .cli_progress import PushProgressDisplay
from .config import config
from .exceptions import PullError, PushError, StudioWebAPIError
from .output import OutputFormatter

logger = logging.getLogger(__name__)


def _make_client(ctx: Any, project_id: Optional[str]) -> StudioWebClient:
    """Build an API client from global options, falling back to config."""
    return StudioWebClient(
        base_url=ctx.obj.get("base_url"),
        org_id=ctx.obj.get("org_id"),
        tenant_id=ctx.obj.get("tenant_id"),
        access_token=ctx.obj.get("access_token"),
        project_id=project_id,
    )


@click.group()
@click.option("--base-url", envvar="UIPATH_BASE_URL", help="UiPath cloud base URL")
@click.option("--org-id", envvar="UIPATH_ORG_ID", help="Organization id or name")
@click.option("--tenant-id", envvar="UIPATH_TENANT_ID", help="Tenant id")
@click.option(
    "--access-token", envvar="UIPATH_ACCESS_TOKEN", help="Bearer access token"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="swsync")
@click.pass_context
def main(
    ctx: Any,
    base_url: Optional[str],
    org_id: Optional[str],
    tenant_id: Optional[str],
    access_token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """swsync - push and pull coded web apps to UiPath Studio Web."""
    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url
    ctx.obj["org_id"] = org_id
    ctx.obj["tenant_id"] = tenant_id
    ctx.obj["access_token"] = access_token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("swsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--org-id", prompt="Organization id", help="Organization id or name")
@click.option("--tenant-id", prompt="Tenant id", help="Tenant id")
@click.option(
    "--access-token",
    prompt="Access token",
    hide_input=True,
    help="Bearer access token",
)
@click.option("--project-id", prompt="Project id", help="Studio Web project id")
@click.pass_context
def init(
    ctx: Any, org_id: str, tenant_id: str, access_token: str, project_id: str
) -> None:
    """Store connection settings in ~/.config/swsync/config."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        for key, value in (
            ("UIPATH_ORG_ID", org_id),
            ("UIPATH_TENANT_ID", tenant_id),
            ("UIPATH_ACCESS_TOKEN", access_token),
            ("UIPATH_PROJECT_ID", project_id),
        ):
            config_path = config.save_value(key, value)
    except (OSError, ValueError) as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)
        return

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved"),
            ("Config file", str(config_path)),
        ],
    )


@main.command()
@click.option(
    "--project-dir",
    "-d",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project root (holds bindings.json and .uipath/)",
)
@click.option(
    "--build-dir",
    "-b",
    default="dist",
    show_default=True,
    help="Build output directory relative to the project root",
)
@click.option("--project-id", "-p", envvar="UIPATH_PROJECT_ID", help="Studio Web project id")
@click.option(
    "--ignore-resources",
    is_flag=True,
    help="Do not import resources referenced in bindings.json",
)
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="Glob pattern to exclude (can be given several times)",
)
@click.option(
    "--include-dot-files",
    is_flag=True,
    help="Also push files and folders starting with a dot",
)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(1, 32),
    default=8,
    show_default=True,
    help="Concurrent remote operations per batch",
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.pass_context
def push(
    ctx: Any,
    project_dir: Path,
    build_dir: str,
    project_id: Optional[str],
    ignore_resources: bool,
    ignore: tuple[str, ...],
    include_dot_files: bool,
    workers: int,
    no_progress: bool,
) -> None:
    """Push the build output to the Studio Web project.

    Examples:
        swsync push                      # push ./dist
        swsync push -b build/web         # push a nested build directory
        swsync push --ignore-resources   # skip bindings.json import
    """
    from .sync import PushEngine

    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _make_client(ctx, project_id)
    except StudioWebAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    show_progress = not (no_progress or out.quiet or out.json_output)
    try:
        if show_progress:
            with PushProgressDisplay() as display:
                engine = PushEngine(
                    client, out, batch_size=workers, progress_callback=display.update
                )
                result = engine.push(
                    project_dir,
                    build_dir,
                    ignore_resources=ignore_resources,
                    ignore_patterns=list(ignore),
                    exclude_dot_files=not include_dot_files,
                )
        else:
            engine = PushEngine(client, out, batch_size=workers)
            result = engine.push(
                project_dir,
                build_dir,
                ignore_resources=ignore_resources,
                ignore_patterns=list(ignore),
                exclude_dot_files=not include_dot_files,
            )
    except KeyboardInterrupt:
        out.warning("\nPush cancelled by user")
        ctx.exit(130)
        return
    except (PushError, StudioWebAPIError, ValueError) as e:
        out.error(str(e))
        ctx.exit(1)
        return
    finally:
        client.close()

    plan = result.plan
    pushed_bytes = sum(
        entry.local_file.size for entry in [*plan.upload_files, *plan.update_files]
    )
    summary_items = [
        ("Uploaded", str(len(plan.upload_files))),
        ("Updated", str(len(plan.update_files))),
        ("Transferred", out.format_size(pushed_bytes)),
        ("Deleted", str(len(plan.delete_files))),
        ("Folders created", str(len(plan.create_folders))),
        ("Empty folders removed", str(result.cleanup.succeeded_count)),
    ]
    if result.import_summary is not None:
        summary_items.append(("Resources", str(result.import_summary)))
    out.print_summary("Push Complete", summary_items)


@main.command()
@click.option(
    "--target-dir",
    "-t",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Directory to write the project into",
)
@click.option("--project-id", "-p", envvar="UIPATH_PROJECT_ID", help="Studio Web project id")
@click.option("--overwrite", is_flag=True, help="Replace existing local files")
@click.option("--yes", "-y", is_flag=True, help="Do not ask before overwriting")
@click.pass_context
def pull(
    ctx: Any,
    target_dir: Path,
    project_id: Optional[str],
    overwrite: bool,
    yes: bool,
) -> None:
    """Download the project's source files into a local directory."""
    from .sync import PullEngine, is_project_root_directory

    out: OutputFormatter = ctx.obj["out"]

    if target_dir.is_dir() and not is_project_root_directory(target_dir):
        out.warning(
            f"{target_dir} does not look like a project root "
            "(no package.json, webAppManifest.json or .uipath/)"
        )

    def prompt_overwrite(paths: list[Path]) -> bool:
        if yes:
            return True
        out.warning(f"{len(paths)} local file(s) would be overwritten.")
        return click.confirm("Overwrite them?", default=False)

    try:
        client = _make_client(ctx, project_id)
    except StudioWebAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    try:
        engine = PullEngine(client, out)
        result = engine.pull(
            target_dir,
            overwrite=overwrite,
            prompt_overwrite=None if out.json_output else prompt_overwrite,
        )
    except KeyboardInterrupt:
        out.warning("\nPull cancelled by user")
        ctx.exit(130)
        return
    except (PullError, StudioWebAPIError) as e:
        out.error(str(e))
        ctx.exit(1)
        return
    finally:
        client.close()

    out.print_summary(
        "Pull Complete",
        [("Downloaded", f"{result.succeeded_count} file(s)"), ("Target", str(target_dir))],
    )


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Show which settings are configured."""
    out: OutputFormatter = ctx.obj["out"]
    missing = config.missing_keys()
    out.print_summary(
        "Configuration",
        [
            ("Config file", str(config.get_config_path())),
            ("Base URL", config.base_url),
            ("Organization", config.org_id or "-"),
            ("Tenant", config.tenant_id or "-"),
            ("Project", config.project_id or "-"),
            ("Access token", "set" if config.access_token else "-"),
            ("Missing", ", ".join(missing) if missing else "none"),
        ],
    )
    if missing:
        ctx.exit(1)


if __name__ == "__main__":
    main()
