"""Main CLI application entry point."""

import asyncio
import logging
import sys
from typing import Optional, Tuple

import click

from ..browser.auth_state import capture_auth_state, inspect_auth_state
from ..browser.locator_chain import ElementLocatorChain
from ..browser.session import BrowserSession
from ..config.harness_config import HarnessConfig, load_config
from ..exceptions import HarnessError
from ..models.harness_models import LocatorChain
from ..reporting.retention import prune_runs
from ..runner.driver import HarnessDriver
from ..scenarios.loader import list_scenarios, load_scenario
from .output import RunConsole

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # The per-run log file may lower package levels; keep the console quiet
    for handler in logging.getLogger().handlers:
        handler.setLevel(log_level)

    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def _fail(message: str, code: int = 1) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--config", "config_path", type=click.Path(), help="Config file path")
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Optional[str]) -> None:
    """
    e2e-harness - browser-driven UI verification.

    Run a scenario:
        e2e-harness run scenarios/login.yaml --env staging

    Check the saved login:
        e2e-harness auth check

    Delete old run directories:
        e2e-harness cleanup --days 10
    """
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path


def _load(ctx: click.Context) -> HarnessConfig:
    try:
        return load_config(ctx.obj.get("config_path"))
    except HarnessError as e:
        _fail(str(e))


@main.command()
@click.argument("scenario_path", type=click.Path())
@click.option("--env", "environment", help="Named environment from the config")
@click.option("--localhost", is_flag=True, help="Target the 'local' environment")
@click.option("--base-url", help="Explicit base URL (overrides --env)")
@click.option("--headless/--headed", default=None, help="Show or hide the browser window")
@click.option("--output-prefix", help="Run directory name prefix")
@click.option("--output-root", type=click.Path(), help="Root directory for run output")
@click.option("--timeout", "timeout_ms", type=int, help="Default step timeout in milliseconds")
@click.option("--interactive", is_flag=True, help="Keep the browser open after the run")
@click.pass_context
def run(
    ctx: click.Context,
    scenario_path: str,
    environment: Optional[str],
    localhost: bool,
    base_url: Optional[str],
    headless: Optional[bool],
    output_prefix: Optional[str],
    output_root: Optional[str],
    timeout_ms: Optional[int],
    interactive: bool,
) -> None:
    """Run a scenario file and exit non-zero unless every step passed."""
    if environment and localhost:
        _fail("--env and --localhost are mutually exclusive", code=2)

    config = _load(ctx)
    updates = {}
    if localhost:
        updates["environment"] = "local"
    elif environment:
        updates["environment"] = environment
    if base_url:
        updates["base_url"] = base_url
    if headless is not None:
        updates["headless"] = headless
    elif interactive:
        updates["headless"] = False
    if output_prefix:
        updates["output_prefix"] = output_prefix
    if output_root:
        updates["output_root"] = output_root
    if timeout_ms is not None:
        updates["default_timeout_ms"] = timeout_ms
    if interactive:
        updates["interactive"] = True
    config = config.model_copy(update=updates)

    console = RunConsole()
    try:
        scenario = load_scenario(scenario_path)
        target = scenario.base_url or config.resolve_base_url()
        console.run_started(scenario.name, target)
        driver = HarnessDriver(config, on_result=console.step_finished)
        report = asyncio.run(driver.run(scenario))
    except HarnessError as e:
        _fail(str(e))
    except KeyboardInterrupt:
        _fail("Interrupted", code=130)

    console.summary(report)
    sys.exit(report.exit_code)


@main.command(name="list")
@click.argument("directory", type=click.Path(), default="scenarios")
def list_command(directory: str) -> None:
    """List scenario files in a directory."""
    try:
        paths = list_scenarios(directory)
    except HarnessError as e:
        _fail(str(e))

    for path in paths:
        try:
            scenario = load_scenario(path)
        except HarnessError as e:
            click.echo(f"{path.name}: invalid ({e})")
            continue
        click.echo(f"{path.name}: {scenario.name} ({len(scenario.steps)} steps)")


@main.group()
def auth() -> None:
    """Inspect or capture the saved auth-state snapshot."""


@auth.command(name="check")
@click.option("--path", "state_path", type=click.Path(), help="Snapshot file (default from config)")
@click.option("--token-key", default="auth-token", show_default=True, help="localStorage key substring")
@click.option("--origin", "origin_filter", help="Only consider origins containing this text")
@click.pass_context
def auth_check(
    ctx: click.Context,
    state_path: Optional[str],
    token_key: str,
    origin_filter: Optional[str],
) -> None:
    """Exit 0 if the snapshot holds an unexpired auth token."""
    config = _load(ctx)
    path = state_path or config.auth_state_path
    if not path:
        _fail("No auth state path configured")

    status = inspect_auth_state(path, token_key=token_key, origin_filter=origin_filter)
    RunConsole().auth_status(path, status)
    sys.exit(0 if status.valid else 1)


@auth.command(name="capture")
@click.option("--path", "state_path", type=click.Path(), help="Snapshot file (default from config)")
@click.option("--url", help="App URL to sign in on (default: the configured base URL)")
@click.option(
    "--indicator",
    "indicators",
    multiple=True,
    help="Locator candidate only visible when signed in (repeatable, in priority order)",
)
@click.option("--storage-key", help="localStorage key substring set after sign-in")
@click.option("--timeout", "timeout_s", type=int, default=300, show_default=True, help="Seconds to wait")
@click.pass_context
def auth_capture(
    ctx: click.Context,
    state_path: Optional[str],
    url: Optional[str],
    indicators: Tuple[str, ...],
    storage_key: Optional[str],
    timeout_s: int,
) -> None:
    """Open a headed browser, wait for a manual sign-in and save the snapshot."""
    config = _load(ctx)
    path = state_path or config.auth_state_path
    if not path:
        _fail("No auth state path configured")
    if not indicators and not storage_key:
        storage_key = "auth-token"

    try:
        target = url or config.resolve_base_url()
    except HarnessError as e:
        _fail(str(e))

    # A stale snapshot must not be restored into the capture session
    capture_config = config.model_copy(update={"headless": False, "auth_state_path": None})
    chain = LocatorChain.parse(list(indicators)) if indicators else None

    async def _capture():
        async with BrowserSession(capture_config) as session:
            page = await session.new_page()
            return await capture_auth_state(
                session,
                page,
                target,
                path,
                resolver=ElementLocatorChain(capture_config.poll_interval_ms),
                indicators=chain,
                storage_key=storage_key,
                timeout_ms=timeout_s * 1000,
            )

    click.echo(f"Sign in on {target} in the browser window...")
    try:
        saved = asyncio.run(_capture())
    except HarnessError as e:
        _fail(str(e))
    click.echo(f"Auth state saved to {saved}")


@main.command()
@click.option("--output-root", type=click.Path(), help="Root directory holding run directories")
@click.option("--days", type=int, help="Maximum age in days (default from config)")
@click.option("--dry-run", is_flag=True, help="Only show what would be deleted")
@click.pass_context
def cleanup(
    ctx: click.Context,
    output_root: Optional[str],
    days: Optional[int],
    dry_run: bool,
) -> None:
    """Delete run directories older than the retention period."""
    config = _load(ctx)
    root = output_root or config.output_root
    max_age = config.retention_days if days is None else days
    result = prune_runs(root, max_age, dry_run=dry_run)
    RunConsole().prune_result(result)


if __name__ == "__main__":
    main()
