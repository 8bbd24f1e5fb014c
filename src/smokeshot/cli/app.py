"""CLI interface for smokeshot."""

from __future__ import annotations

import asyncio
import dataclasses
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from smokeshot.core.config import SmokeShotConfig, load_dotenv
from smokeshot.core.exceptions import PluginError, SmokeShotError
from smokeshot.core.types import TestResult

load_dotenv()

app = typer.Typer(name="smokeshot", help="Screenshot smoke tests for mobile apps")
console = Console()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.command()
def devices() -> None:
    """List all connected devices."""

    async def _list() -> None:
        from smokeshot.device.adb import AdbClient

        adb = AdbClient()
        devs = await adb.devices()

        table = Table(title="Connected Devices")
        table.add_column("Serial", style="cyan")
        table.add_column("State", style="green")
        table.add_column("Model")

        for d in devs:
            state_style = "green" if d.state == "device" else "red"
            table.add_row(d.serial, f"[{state_style}]{d.state}[/]", d.model)

        console.print(table)

    asyncio.run(_list())


@app.command()
def profiles() -> None:
    """List the built-in smoke profiles."""
    from smokeshot.automation.smoke import PROFILE_ALIASES, PROFILES

    aliases = {v: k for k, v in PROFILE_ALIASES.items()}
    table = Table(title="Smoke Profiles")
    table.add_column("Alias", style="cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Check")
    table.add_column("Settle ms")
    table.add_column("Upload")

    for name, p in PROFILES.items():
        table.add_row(
            aliases.get(name, ""),
            name,
            "yes" if p.check_package else "no",
            str(p.settle_delay_ms),
            p.upload_label or "-",
        )
    console.print(table)


@app.command()
def run(
    paths: list[str] | None = typer.Argument(None, help="Scenario files or directories"),
    config_path: str = typer.Option("smokeshot.yaml", "--config", "-c", help="YAML config file"),
    profile: str | None = typer.Option(None, "--profile", "-P", help="Smoke profile name or alias A-D"),
    backend: str | None = typer.Option(None, "--backend", "-b", help="Session backend: adb, appium, agent"),
    serial: str | None = typer.Option(None, "--serial", "-s", help="Target device serial"),
    tags: list[str] = typer.Option([], "--tags", "-t", help="Filter by tags"),
    output: str | None = typer.Option(None, "--output", "-o", help="Report output directory"),
    formats: list[str] = typer.Option([], "--formats", "-f", help="Report formats"),
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="Logging level"),
) -> None:
    """Run smoke scenarios against a device."""
    config = SmokeShotConfig.load(config_path)
    if backend:
        config.session.backend = backend
    if serial:
        config.session.serial = serial
    if profile:
        config.smoke.profile = profile
    if output:
        config.reporter.output_dir = output
    if formats:
        config.reporter.formats = formats
    setup_logging(log_level or config.log_level)

    try:
        results = asyncio.run(_run(config, paths or ["scenarios"], tags))
    except SmokeShotError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        raise typer.Exit(code=2)

    if results is None:
        raise typer.Exit(code=2)
    if not all(r.passed for r in results):
        raise typer.Exit(code=1)


async def _run(config: SmokeShotConfig, paths: list[str], tags: list[str]) -> list[TestResult] | None:
    from smokeshot.automation.runner import TestRunner
    from smokeshot.automation.smoke import SmokeContext, resolve_profile
    from smokeshot.core.events import EventBus
    from smokeshot.device.manager import SessionManager
    from smokeshot.plugins.base import PluginContext
    from smokeshot.plugins.host import PluginHost

    smoke_profile = resolve_profile(config.smoke.profile, **config.smoke.overrides())

    event_bus = EventBus()
    runner = TestRunner(event_bus)
    tests = runner.discover(paths)
    if tags:
        tests = runner.filter_tests(tests, tags=tags)
    if not tests:
        console.print("[yellow]No tests found[/yellow]")
        return None

    console.print(
        f"Found [cyan]{len(tests)}[/cyan] test(s), profile [cyan]{smoke_profile.name}[/cyan]"
    )

    plugin_host = PluginHost(PluginContext(
        config=dataclasses.asdict(config.visual_diff),
        data_dir=config.reporter.output_dir,
        screenshot_path=smoke_profile.screenshot_path,
    ))
    results: list[TestResult] = []
    try:
        async with SessionManager(config.session) as manager:
            session = await manager.open()
            console.print(f"Connected via [cyan]{config.session.backend}[/cyan] to [cyan]{session.serial}[/cyan]")

            visual_diff = None
            if smoke_profile.needs_visual_diff:
                visual_diff = await plugin_host.load_from_entry_point(config.visual_diff.plugin)
                if not callable(visual_diff):
                    raise PluginError(
                        f"{config.visual_diff.plugin} cannot be called with a label", code=7004
                    )
            try:
                context = SmokeContext(session, smoke_profile, visual_diff, event_bus)
                results = await runner.run(tests, context)
            finally:
                await plugin_host.unload_all()
    finally:
        # Results already collected are reported even if teardown fails.
        if results:
            _report(config, results)
    return results


def _report(config: SmokeShotConfig, results: list[TestResult]) -> None:
    from smokeshot.reporter.generator import ReportGenerator

    _print_results(results)
    generator = ReportGenerator(config.reporter.output_dir)
    for path in generator.generate(results, formats=config.reporter.formats):
        console.print(f"Report: [blue]{path}[/blue]")


def _print_results(results: list[TestResult]) -> None:
    table = Table(title="Test Results")
    table.add_column("Suite")
    table.add_column("Test", style="cyan")
    table.add_column("Device")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Error", max_width=60)

    for r in results:
        status_style = {
            "passed": "green",
            "failed": "red",
            "error": "red bold",
            "skipped": "yellow",
        }.get(r.status.value, "white")

        table.add_row(
            r.suite,
            r.name,
            r.device_serial,
            f"[{status_style}]{r.status.value.upper()}[/]",
            f"{r.duration_ms:.0f}ms",
            r.error_message or "-",
        )

    console.print(table)
    passed_count = sum(1 for r in results if r.passed)
    console.print(f"\n[bold]{passed_count}/{len(results)} passed[/bold]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
