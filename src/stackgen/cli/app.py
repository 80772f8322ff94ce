# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml
from pydantic import ValidationError

from stackgen.config.loader import load_config
from stackgen.config.models import StackConfig
from stackgen.errors import ConfigError, StackgenError
from stackgen.gitops.composer import render_gitops
from stackgen.gitops.planner import CyclicDependencyError, UnknownDependencyError
from stackgen.logging.log import init_logging
from stackgen.observers.console import ConsoleObserver
from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import new_ctx
from stackgen.observers.jsonfile import JsonFileObserver
from stackgen.observers.logger import LoggerObserver
from stackgen.talos.composer import render_talos
from stackgen.talos.schematics import ContentHashResolver, FactoryClient, SchematicResolver
from stackgen.tunnel.composer import render_tunnel
from stackgen.utils.artifacts import Artifact, write_artifacts


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Compose tunnel, Talos and Flux bootstrap artifacts", no_args_is_help=True)

DEFAULT_OUTPUT_DIR = Path("out")

ConfigArg = typer.Argument(..., exists=True, dir_okay=False, help="Stack definition YAML")
OutputOpt = typer.Option(None, "--output-dir", "-o", help="Where to write artifacts (default: ./out)")
LogDirOpt = typer.Option(None, "--log-dir", help="Run log directory (default: ~/.stackgen/logs)")
DebugOpt = typer.Option(False, "--debug", help="DEBUG output on the console")
VerboseEventsOpt = typer.Option(False, "--events", help="Echo lifecycle events to the console")
FactoryOpt = typer.Option(
    None,
    "--factory-url",
    help="Talos image factory URL (e.g. https://factory.talos.dev); offline ids when unset",
)


def make_resolver(factory_url: Optional[str]) -> SchematicResolver:
    if factory_url:
        return FactoryClient(base_url=factory_url)
    return ContentHashResolver()


# ------------------------------------------------------------------------------
# Helpers (extracted logic)
# ------------------------------------------------------------------------------

def compose_sections(
    cfg: StackConfig,
    sections: List[str],
    *,
    resolver: SchematicResolver,
    bus: EventBus,
    run_id: str,
) -> List[Artifact]:
    artifacts: List[Artifact] = []

    for section in sections:
        ctx: Dict[str, Any] = new_ctx(env=cfg.environment, context=section, run_id=run_id)
        if section == "tunnel":
            artifacts.extend(render_tunnel(cfg.tunnel, bus=bus, ctx=ctx).artifacts())
        elif section == "talos":
            artifacts.extend(render_talos(cfg.talos, resolver=resolver, bus=bus, ctx=ctx).artifacts())
        elif section == "gitops":
            artifacts.extend(render_gitops(cfg.gitops, bus=bus, ctx=ctx).artifacts())

    return artifacts


def run(
    *,
    config: Path,
    sections: Optional[List[str]],
    output_dir: Optional[Path],
    factory_url: Optional[str],
    log_dir: Optional[Path],
    debug: bool,
    events: bool,
) -> None:
    logger, run_id, log_path = init_logging(base_dir=log_dir, verbose=debug)

    observers: List[Any] = [
        LoggerObserver(logger),
        JsonFileObserver(log_path.with_suffix(".jsonl")),
    ]
    if events:
        observers.append(ConsoleObserver())
    bus = EventBus(observers=observers)

    try:
        cfg = load_config(config)
    except (ValidationError, ConfigError, yaml.YAMLError) as e:
        logger.error("cannot load %s: %s", config, e)
        typer.secho(f"Invalid stack file {config}:\n{e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    if sections is None:
        sections = cfg.present_sections()
        if not sections:
            typer.secho(f"{config} defines no tunnel, talos or gitops section", fg=typer.colors.YELLOW, err=True)
            raise typer.Exit(code=2)
    else:
        missing = [s for s in sections if getattr(cfg, s) is None]
        if missing:
            raise typer.BadParameter(f"{config} has no '{missing[0]}' section")

    dst = output_dir or (Path(cfg.output_dir) if cfg.output_dir else DEFAULT_OUTPUT_DIR)
    logger.debug("sections=%s output_dir=%s", sections, dst)

    try:
        artifacts = compose_sections(
            cfg, sections, resolver=make_resolver(factory_url), bus=bus, run_id=run_id
        )
    except (StackgenError, UnknownDependencyError, CyclicDependencyError) as e:
        logger.error("render failed: %s", e)
        typer.secho(f"Render failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    ctx = new_ctx(env=cfg.environment, context="output", run_id=run_id)
    written = write_artifacts(artifacts, dst_dir=dst, bus=bus, ctx=ctx)

    typer.echo("")
    typer.secho(f"Wrote {len(written)} file(s) to {dst}", bold=True)
    for w in written:
        typer.echo(f"  {w.name}")
    typer.echo(f"  Logs: {log_path}")


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def tunnel(
    config: Path = ConfigArg,
    output_dir: Optional[Path] = OutputOpt,
    log_dir: Optional[Path] = LogDirOpt,
    debug: bool = DebugOpt,
    events: bool = VerboseEventsOpt,
):
    """Cloudflare Tunnel ingress config and DNS records."""
    run(config=config, sections=["tunnel"], output_dir=output_dir, factory_url=None,
        log_dir=log_dir, debug=debug, events=events)


@app.command()
def talos(
    config: Path = ConfigArg,
    output_dir: Optional[Path] = OutputOpt,
    factory_url: Optional[str] = FactoryOpt,
    log_dir: Optional[Path] = LogDirOpt,
    debug: bool = DebugOpt,
    events: bool = VerboseEventsOpt,
):
    """Talos base/patch documents, schematics, talosconfig and ZFS scripts."""
    run(config=config, sections=["talos"], output_dir=output_dir, factory_url=factory_url,
        log_dir=log_dir, debug=debug, events=events)


@app.command()
def gitops(
    config: Path = ConfigArg,
    output_dir: Optional[Path] = OutputOpt,
    log_dir: Optional[Path] = LogDirOpt,
    debug: bool = DebugOpt,
    events: bool = VerboseEventsOpt,
):
    """Flux Operator bootstrap steps, FluxInstance and bootstrap.sh."""
    run(config=config, sections=["gitops"], output_dir=output_dir, factory_url=None,
        log_dir=log_dir, debug=debug, events=events)


@app.command()
def render(
    config: Path = ConfigArg,
    output_dir: Optional[Path] = OutputOpt,
    factory_url: Optional[str] = FactoryOpt,
    log_dir: Optional[Path] = LogDirOpt,
    debug: bool = DebugOpt,
    events: bool = VerboseEventsOpt,
):
    """Every section present in the stack file."""
    run(config=config, sections=None, output_dir=output_dir, factory_url=factory_url,
        log_dir=log_dir, debug=debug, events=events)


if __name__ == "__main__":
    app()
