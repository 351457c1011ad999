"""CLI for site-usage.

Provides a rich command-line interface using Typer for:
- Sampling per-site CPU/memory/I/O/process usage (one-shot or watch mode)
- Listing sites and their owners
- Handing over to systemd-cgtop for a live view
- Generating a sample configuration file
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from site_usage.core.config import apply_overrides, load_config
from site_usage.core.exceptions import ConfigurationError
from site_usage.core.schemas import MonitorConfig
from site_usage.integrations.cgtop import build_cgtop_command, exec_cgtop
from site_usage.monitoring.baseline import BaselineStore
from site_usage.monitoring.counter_source import CgroupCounterSource
from site_usage.monitoring.discovery import (
    entities_for_owner,
    find_owners,
    list_entities,
    partial_stats,
)
from site_usage.monitoring.perf import PerfRecorder
from site_usage.monitoring.sampler import EntitySampler
from site_usage.monitoring.scheduler import ResultRenderer, TickScheduler, cancel_on_signals
from site_usage.output.renderers import JsonRenderer, TableRenderer, overview_table
from site_usage.utils.logging import get_logger, setup_logging

app = typer.Typer(
    name="site-usage",
    help="Per-site cgroup v2 resource usage",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[bold red]Error:[/] {message}", highlight=False)
    return typer.Exit(1)


def _load_run_config(config: Path | None, **overrides: object) -> MonitorConfig:
    """Load the config file (if any) and apply CLI overrides."""
    try:
        base = load_config(config) if config is not None else MonitorConfig()
        return apply_overrides(base, **overrides)
    except (FileNotFoundError, ValueError) as e:
        # pydantic.ValidationError is a ValueError
        if isinstance(e, ValidationError):
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise _fail(f"Invalid configuration: {details}") from e
        raise _fail(str(e)) from e


def _require_cgroup_root(cfg: MonitorConfig) -> None:
    if not cfg.cgroup_root.is_dir():
        raise ConfigurationError(f"cgroup root {cfg.cgroup_root} does not exist")


def _select_entity(source: CgroupCounterSource, cfg: MonitorConfig) -> str:
    """Show the selection table and prompt for one entity."""
    entities = list_entities(cfg.cgroup_root)
    if not entities:
        raise ConfigurationError(f"No cgroups found in {cfg.cgroup_root}")

    overviews = [partial_stats(source, cfg.www_root, e) for e in entities]
    console.print(overview_table(overviews))
    return entities[_prompt_index(len(entities))]


def _prompt_index(count: int) -> int:
    """Prompt for a 1-based selection; 'q' exits cleanly."""
    while True:
        choice = typer.prompt(f"Select a number (1-{count}) or 'q' to quit").strip()
        if choice.lower() == "q":
            raise typer.Exit(0)
        if choice.isdecimal() and 1 <= int(choice) <= count:
            return int(choice) - 1
        console.print("[yellow]Invalid selection.[/]")


def _resolve_entities(
    source: CgroupCounterSource,
    cfg: MonitorConfig,
    entity: str | None,
    all_entities: bool,
) -> list[str]:
    if all_entities:
        entities = list_entities(cfg.cgroup_root)
        if not entities:
            raise ConfigurationError(f"No cgroups found in {cfg.cgroup_root}")
        return entities

    if entity is None:
        entity = _select_entity(source, cfg)
    if not source.exists(entity):
        raise ConfigurationError(f"'{entity}' not found in {cfg.cgroup_root}")
    return [entity]


@app.command()
def stats(
    entity: str | None = typer.Argument(None, help="Site cgroup name (prompted if omitted)"),
    all_entities: bool = typer.Option(False, "--all", "-a", help="Sample every site cgroup"),
    watch: bool | None = typer.Option(
        None, "--watch/--no-watch", help="Repeat until interrupted"
    ),
    seconds: int | None = typer.Option(
        None, "--seconds", "-s", help="Sampling window / refresh interval in seconds"
    ),
    json_output: bool | None = typer.Option(
        None, "--json/--no-json", help="Output JSON instead of a table"
    ),
    perf_test: bool | None = typer.Option(
        None, "--perf-test/--no-perf-test", help="Measure the sampler's own overhead"
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to configuration file (YAML/JSON)"
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="Logging level"),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Write logs to file in addition to stderr"
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Output logs in JSON format"),
) -> None:
    """Show CPU, memory, I/O and process usage for one or all sites."""
    cfg = _load_run_config(
        config,
        watch=watch,
        interval_seconds=seconds,
        json_output=json_output,
        perf_test=perf_test,
        log_level=log_level,
    )
    setup_logging(
        level=cfg.log_level, log_file=log_file, json_format=json_logs, rich_console=not json_logs
    )

    with CgroupCounterSource(
        cfg.cgroup_root, proc_root=cfg.proc_root, read_timeout_seconds=cfg.read_timeout_seconds
    ) as source:
        try:
            _require_cgroup_root(cfg)
            entities = _resolve_entities(source, cfg, entity, all_entities)

            renderer: ResultRenderer
            if cfg.json_output:
                renderer = JsonRenderer(as_array=all_entities)
            else:
                renderer = TableRenderer(console, clear_screen=cfg.watch)

            sampler = EntitySampler.for_www_root(source, BaselineStore(), cfg.www_root)
            scheduler = TickScheduler(
                sampler,
                entities,
                renderer,
                interval_seconds=cfg.interval_seconds,
                watch=cfg.watch,
                perf=PerfRecorder() if cfg.perf_test else None,
            )
        except ConfigurationError as e:
            raise _fail(str(e)) from e

        logger.info(f"Sampling {len(entities)} site(s) every {cfg.interval_seconds}s")
        with cancel_on_signals(scheduler.token):
            scheduler.run()


@app.command("list")
def list_sites(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to configuration file (YAML/JSON)"
    ),
) -> None:
    """List site cgroups with owner, memory and process count."""
    cfg = _load_run_config(config)
    setup_logging(level=cfg.log_level)

    entities = list_entities(cfg.cgroup_root)
    if not entities:
        raise _fail(f"No cgroups found in {cfg.cgroup_root}")

    with CgroupCounterSource(
        cfg.cgroup_root, proc_root=cfg.proc_root, read_timeout_seconds=cfg.read_timeout_seconds
    ) as source:
        console.print(overview_table([partial_stats(source, cfg.www_root, e) for e in entities]))


@app.command()
def owners(
    fragment: str = typer.Argument(..., help="Part of the owner's user name"),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to configuration file (YAML/JSON)"
    ),
) -> None:
    """Find site owners by partial user name and list their sites."""
    cfg = _load_run_config(config)
    setup_logging(level=cfg.log_level)

    matches = find_owners(cfg.www_root, fragment)
    if not matches:
        raise _fail(f"No users found matching '{fragment}'")

    for owner in matches:
        console.print(f"[bold green]{owner}[/]")
        for site in entities_for_owner(cfg.www_root, owner):
            console.print(f"  {site}", highlight=False)


@app.command()
def top(
    entity: str | None = typer.Option(None, "--entity", "-e", help="Watch a single site"),
    owner: str | None = typer.Option(
        None, "--owner", "-o", help="Pick a site by (partial) owner name"
    ),
    sort: str = typer.Option("cpu", "--sort", help="Sort order: cpu, mem or io"),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to configuration file (YAML/JSON)"
    ),
) -> None:
    """Hand over to systemd-cgtop for a live view of one or all sites."""
    cfg = _load_run_config(config)
    setup_logging(level=cfg.log_level)

    try:
        # Validate the sort mode before any prompting
        build_cgtop_command(sort=sort, cgroup_root=cfg.cgroup_root)

        if owner is not None and entity is None:
            entity = _select_site_by_owner(cfg, owner)
        if entity is not None and not (cfg.www_root / entity).is_dir():
            raise ConfigurationError(f"Website ID {entity} not found in {cfg.www_root}")

        command = build_cgtop_command(sort=sort, entity=entity, cgroup_root=cfg.cgroup_root)
        target = f"website {entity}" if entity else f"all websites, sorted by {sort.lower()}"
        console.print(f"[bold green]Monitoring {target}[/]")
        exec_cgtop(command)
    except ConfigurationError as e:
        raise _fail(str(e)) from e


def _select_site_by_owner(cfg: MonitorConfig, fragment: str) -> str:
    matches = find_owners(cfg.www_root, fragment)
    if not matches:
        raise ConfigurationError(f"No users found matching '{fragment}'")

    owner = matches[0]
    if len(matches) > 1:
        console.print(f"[bold green]Multiple users found matching '{fragment}':[/]")
        for index, name in enumerate(matches, start=1):
            console.print(f"{index}. {name}", highlight=False)
        owner = matches[_prompt_index(len(matches))]

    sites = entities_for_owner(cfg.www_root, owner)
    if not sites:
        raise ConfigurationError(f"No websites found for user '{owner}'")

    console.print(f"[bold green]Found websites owned by {owner}:[/]")
    for index, site in enumerate(sites, start=1):
        console.print(f"{index}. {site}", highlight=False)
    return sites[_prompt_index(len(sites))]


@app.command()
def init_config(
    output: Path = typer.Option(
        Path("site-usage.yaml"), "--output", "-o", help="Output configuration file"
    ),
) -> None:
    """Generate a sample configuration file."""
    sample_config = """\
# site-usage configuration

# Parent cgroup with one child cgroup per site
cgroup_root: /sys/fs/cgroup/websites

# Site directories; the directory owner is shown as the site owner
www_root: /var/www

proc_root: /proc

# Sampling window and watch-mode refresh interval (seconds, >= 1)
interval_seconds: 1

watch: false
json_output: false

# Report the sampler's own wall time, peak memory and CPU usage at exit
perf_test: false

# Upper bound for reading any single cgroup file
read_timeout_seconds: 2.0

log_level: WARNING
"""
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(sample_config)
    console.print(f"[bold green]Sample configuration written to {output}[/]")


if __name__ == "__main__":
    app()
