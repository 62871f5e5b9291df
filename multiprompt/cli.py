"""
CLI interface for multiprompt.

Commands:
    providers     - List the provider catalogue and selector config versions
    script        - Print the injection script for one provider
    submit        - Send a prompt to several providers and report the outcome
    check-config  - Validate a provider selector configuration file
"""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click

from multiprompt import __version__
from multiprompt.errors import CommandError
from multiprompt.logging_utils import configure_logging
from multiprompt.providers.registry import ProviderId

PROVIDER_CHOICE = click.Choice([p.value for p in ProviderId], case_sensitive=False)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(version=__version__, prog_name="multiprompt")
@click.option("--config", "config_path", default=None,
              type=click.Path(dir_okay=False, path_type=Path),
              help="Provider selector configuration file (default: bundled providers.json).")
@click.option("--verbose", "-v", is_flag=True, help="Log dispatch events to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """multiprompt: send one prompt to several chat providers at once."""
    from multiprompt.settings import load_settings

    configure_logging(verbose)
    ctx.ensure_object(dict)
    try:
        settings = load_settings()
    except CommandError as e:
        raise click.ClickException(str(e))
    if config_path:
        settings = replace(settings, providers_config=config_path)
    ctx.obj["settings"] = settings


def _load_configs(path: Optional[Path]):
    from multiprompt.providers.config import load_provider_configs

    try:
        return load_provider_configs(path)
    except (CommandError, FileNotFoundError) as e:
        raise click.ClickException(str(e))


# ---------------------------------------------------------------------------
# providers
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--json-output", is_flag=True, help="Output as JSON instead of plain text.")
@click.pass_context
def providers(ctx: click.Context, json_output: bool) -> None:
    """List supported providers."""
    from multiprompt.providers.registry import ProviderRegistry

    configs = _load_configs(ctx.obj["settings"].providers_config)
    registry = ProviderRegistry()

    if json_output:
        rows = []
        for provider in registry.list():
            row = provider.to_dict()
            config = configs.providers.get(provider.id)
            row["config_version"] = config.version if config else None
            rows.append(row)
        click.echo(json.dumps(rows, indent=2))
        return

    click.echo(f"\nProviders (selector config {configs.version}):\n")
    for provider in registry.list():
        config = configs.providers.get(provider.id)
        click.echo(f"  {provider.name}")
        click.echo(f"    URL:      {provider.url}")
        click.echo(f"    Selected: {provider.is_selected}")
        if config:
            click.echo(f"    Selectors: v{config.version} "
                       f"({len(config.input_selectors)} input, "
                       f"{len(config.submit_selectors)} submit)")
        else:
            click.echo("    Selectors: not configured")
        click.echo()


# ---------------------------------------------------------------------------
# script
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("prompt")
@click.option("--provider", "-p", required=True, type=PROVIDER_CHOICE, help="Target provider.")
@click.option("--output", "-o", default=None, help="Output file path (default: stdout).")
@click.pass_context
def script(ctx: click.Context, prompt: str, provider: str, output: Optional[str]) -> None:
    """Print the injection script that would be sent to a provider."""
    from multiprompt.injection.script_builder import ScriptSynthesizer

    settings = ctx.obj["settings"]
    configs = _load_configs(settings.providers_config)
    try:
        config = configs.get_config(provider)
        text = ScriptSynthesizer(settle_ms=settings.settle_ms).build_for(config, prompt)
    except CommandError as e:
        raise click.ClickException(str(e))

    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Script written to {output}")
    else:
        click.echo(text, nl=False)


# ---------------------------------------------------------------------------
# submit
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("prompt")
@click.option("--provider", "-p", "selected", multiple=True, type=PROVIDER_CHOICE,
              help="Provider to send to (repeatable, default: all).")
@click.option("--dry-run", is_flag=True, help="Build and 'execute' scripts without contacting any target.")
@click.option("--endpoint", default=None, help="Browser-automation endpoint URL.")
@click.option("--retry/--no-retry", default=True, help="Retry once on timeout or network failure.")
@click.option("--wait-seconds", default=60.0, type=float, show_default=True,
              help="How long to wait for providers to settle.")
@click.option("--json-output", is_flag=True, help="Output as JSON instead of plain text.")
@click.pass_context
def submit(
    ctx: click.Context,
    prompt: str,
    selected: tuple[str, ...],
    dry_run: bool,
    endpoint: Optional[str],
    retry: bool,
    wait_seconds: float,
    json_output: bool,
) -> None:
    """Send PROMPT to the selected providers and report each outcome."""
    from multiprompt.dispatch.runner import DispatchReport, Dispatcher
    from multiprompt.injection.executor import DryRunExecutor, RemoteExecutor
    from multiprompt.providers.registry import ProviderRegistry
    from multiprompt.tracker.submission import utcnow

    settings = replace(ctx.obj["settings"], auto_retry=retry)
    endpoint = endpoint or settings.executor_endpoint

    if dry_run:
        executor = DryRunExecutor()
    elif endpoint:
        executor = RemoteExecutor(endpoint, timeout=settings.executor_timeout)
    else:
        raise click.UsageError(
            "No executor endpoint configured. Pass --endpoint, set "
            "MULTIPROMPT_EXECUTOR_URL, or use --dry-run."
        )

    registry = ProviderRegistry()
    wanted = {ProviderId.parse(name) for name in selected}
    try:
        if wanted:
            for provider in registry.list():
                if provider.id not in wanted:
                    registry.set_selected(provider.id, False)
    except CommandError as e:
        executor.close()
        raise click.ClickException(str(e))

    started_at = utcnow()
    try:
        with Dispatcher.from_settings(settings, executor=executor, registry=registry) as dispatcher:
            submissions = dispatcher.submit(prompt)
            settled = dispatcher.wait([s.id for s in submissions], timeout=wait_seconds)
    except (CommandError, FileNotFoundError) as e:
        raise click.ClickException(str(e))
    finally:
        executor.close()

    report = DispatchReport.from_submissions(settled, started_at, dry_run=dry_run)

    if json_output:
        click.echo(json.dumps(
            {
                "dry_run": dry_run,
                "success": report.succeeded,
                "failed": report.failed,
                "unsettled": report.unsettled,
                "submissions": [s.to_dict() for s in report.submissions],
            },
            indent=2,
            ensure_ascii=False,
        ))
    else:
        click.echo(report.summary())

    if report.failed or report.unsettled:
        ctx.exit(1)


# ---------------------------------------------------------------------------
# check-config
# ---------------------------------------------------------------------------

@cli.command(name="check-config")
@click.argument("path", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def check_config(ctx: click.Context, path: Optional[Path]) -> None:
    """Validate a provider selector configuration file."""
    configs = _load_configs(path or ctx.obj["settings"].providers_config)

    click.echo(f"Configuration OK (version {configs.version})")
    for pid in ProviderId:
        config = configs.providers.get(pid)
        if config is None:
            click.echo(f"  {pid.value:8s} | missing")
            continue
        click.echo(
            f"  {pid.value:8s} | v{config.version:8s} | "
            f"{len(config.input_selectors)} input, {len(config.submit_selectors)} submit, "
            f"{len(config.auth_check_selectors)} login selectors"
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
