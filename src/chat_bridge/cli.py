from __future__ import annotations
import threading
from dataclasses import replace
from pathlib import Path
from importlib.metadata import version as pkg_version, PackageNotFoundError
from typing import Any, Dict, Optional
import typer

from .version import __version__
from .bootstrap import build_app
from .config import PROVIDER_ENV
from .config_loader import ConfigError, MissingCredentialsError
from .core.bridge_session import AgentOptions, run_bridge
from .core.errors import BridgeError, InvalidCredentials
from .core.ports import ProviderConfig
from .ui import console as ui
from .ui.console import ConsoleObserver, console

app = typer.Typer(
    add_completion=False,
    help="Chat Bridge - relay a conversation between two AI assistants.",
)

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Optional YAML config file.", exists=True, dir_okay=False)


def app_version() -> str:
    try:
        return pkg_version("chat-bridge")
    except PackageNotFoundError:
        return __version__


def _load(config: Optional[Path], **kwargs) -> Dict[str, Any]:
    try:
        return build_app(config, **kwargs)
    except (ConfigError, ValueError, FileNotFoundError) as e:
        ui.error(f"Configuration error: {e}")
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version information.", is_eager=True),
):
    if version:
        typer.echo(f"Chat Bridge v{app_version()}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        ui.render_banner(f"v{app_version()}")
        typer.echo(ctx.get_help())


@app.command()
def start(
    provider_a: Optional[str] = typer.Option(None, "--provider-a", help="Provider for Agent A."),
    provider_b: Optional[str] = typer.Option(None, "--provider-b", help="Provider for Agent B."),
    model_a: Optional[str] = typer.Option(None, "--model-a", help="Model for Agent A (default: provider default)."),
    model_b: Optional[str] = typer.Option(None, "--model-b", help="Model for Agent B (default: provider default)."),
    temp_a: Optional[float] = typer.Option(None, "--temp-a", min=0.0, max=2.0, help="Temperature for Agent A."),
    temp_b: Optional[float] = typer.Option(None, "--temp-b", min=0.0, max=2.0, help="Temperature for Agent B."),
    starter: Optional[str] = typer.Option(None, "--starter", help="Conversation starter."),
    max_rounds: Optional[int] = typer.Option(None, "--max-rounds", min=1, help="Maximum conversation rounds."),
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="stderr log level (default WARNING)."),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write DEBUG logs to this file."),
    no_banner: bool = typer.Option(False, "--no-banner", help="Skip the banner."),
):
    """Start a conversation between two AI assistants."""
    ctx = _load(config, log_level=log_level, log_file=log_file)
    settings, registry = ctx["settings"], ctx["registry"]

    if not no_banner:
        ui.render_banner(f"v{app_version()}")

    agent_a = AgentOptions(
        label="Agent A",
        provider=(provider_a or settings.provider_a).lower(),
        model=model_a or settings.model_a,
        temperature=settings.temperature_a if temp_a is None else temp_a,
    )
    agent_b = AgentOptions(
        label="Agent B",
        provider=(provider_b or settings.provider_b).lower(),
        model=model_b or settings.model_b,
        temperature=settings.temperature_b if temp_b is None else temp_b,
    )
    policy = settings.policy()
    if max_rounds is not None:
        policy = replace(policy, max_rounds=max_rounds)
    starter = starter or settings.starter

    # Local-only pairs (echo, ollama, lmstudio) need no credentials at all
    needs_key = any(
        (spec := registry.get_spec(opts.provider)) is not None and spec.needs_api_key
        for opts in (agent_a, agent_b)
    )
    if needs_key:
        try:
            settings.validate()
        except MissingCredentialsError as e:
            ui.error("Configuration error:")
            ui.warning(str(e))
            ui.info("Please set API keys in .env file or environment variables")
            raise typer.Exit(code=1)

    ui.section("Session Configuration", "⚙️")
    for opts in (agent_a, agent_b):
        spec = registry.get_spec(opts.provider)
        model = opts.model or settings.default_model(opts.provider) or (spec.default_model if spec else "")
        style = ui.AGENT_STYLES[opts.label]
        console.print(f"  [{style}]{opts.label}[/]: {opts.provider}")
        if model:
            console.print(f"  [bright_yellow]Model[/]: {model}")
        console.print(f"  [bright_cyan]Temperature[/]: {opts.temperature:.1f}")
        console.print()
    console.print(f"  [bright_blue]Max Rounds[/]: {policy.max_rounds}")
    console.print(f"  Starter: {starter}", markup=False)
    console.print()

    cancel = threading.Event()
    try:
        result = run_bridge(
            registry,
            settings,
            agent_a,
            agent_b,
            starter,
            policy=policy,
            observer=ConsoleObserver(),
            cancel=cancel,
        )
    except KeyboardInterrupt:
        cancel.set()
        console.print()
        ui.warning("Conversation interrupted")
        raise typer.Exit(code=130)
    except BridgeError as e:
        console.print()
        ui.error(e.describe())
        if isinstance(e, InvalidCredentials):
            side = agent_a if e.agent == agent_a.label else agent_b
            env = PROVIDER_ENV.get(side.provider)
            if env and env.api_key:
                ui.info(f"Check {env.api_key} in your .env file or environment")
        raise typer.Exit(code=1)

    console.print()
    ui.success(f"Conversation completed! {result.rounds} rounds")


@app.command()
def providers(config: Optional[Path] = CONFIG_OPTION):
    """List known providers and whether they can be used yet."""
    ctx = _load(config)
    registry = ctx["registry"]
    console.print(ui.providers_table(registry.list_providers(), registry.has_factory))


@app.command()
def models(
    provider: str = typer.Argument(..., help="Provider key, e.g. openai."),
    config: Optional[Path] = CONFIG_OPTION,
):
    """Show the model catalog of one provider."""
    ctx = _load(config)
    settings, registry = ctx["settings"], ctx["registry"]
    key = provider.lower()
    try:
        instance = registry.new_provider(key, ProviderConfig(
            api_key=settings.api_key(key),
            base_url=settings.base_url(key),
            model=settings.default_model(key),
            timeout=settings.timeout(key),
        ))
        names = instance.models()
    except BridgeError as e:
        ui.error(e.describe())
        raise typer.Exit(code=1)

    for name in names:
        marker = "*" if name == instance.default_model else " "
        typer.echo(f"{marker} {name}")
