from __future__ import annotations
from typing import Iterable, Optional

from pyfiglet import figlet_format
from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chat_bridge.core.bridge_session import Agent, BridgeObserver, BridgeState
from chat_bridge.core.ports import ProviderSpec

console = Console(highlight=False)

AGENT_STYLES = {"Agent A": "bold bright_green", "Agent B": "bold bright_magenta"}


def _pick_font(width: int) -> str:
    # figlet 'standard' needs roughly 70 columns for the title
    return "standard" if width >= 80 else "small"


def render_banner(app_version: Optional[str] = None, *, out: Optional[Console] = None) -> None:
    out = out or console
    art = figlet_format("Chat Bridge", font=_pick_font(out.width))
    art = "\n".join(line.rstrip() for line in art.splitlines())
    panel = Panel(
        Align.center(Text(art, style="bold bright_cyan")),
        title=app_version,
        subtitle="Connect two AI assistants",
        border_style="bright_cyan",
        expand=True,
    )
    out.print(panel)


def section(title: str, icon: str = "", *, out: Optional[Console] = None) -> None:
    out = out or console
    out.print()
    out.rule(f"[bold bright_yellow]{icon + ' ' if icon else ''}{title.upper()}[/]", style="grey42")


def success(msg: str) -> None:
    console.print(f"[bright_green]✓ {msg}[/]")


def error(msg: str) -> None:
    console.print(Text(f"✗ {msg}", style="bold bright_red"))


def warning(msg: str) -> None:
    console.print(Text(f"! {msg}", style="bright_yellow"))


def info(msg: str) -> None:
    console.print(Text(f"→ {msg}", style="bright_blue"))


def providers_table(specs: Iterable[ProviderSpec], implemented) -> Table:
    table = Table(title="Providers", header_style="bold bright_cyan")
    table.add_column("Key", style="bold")
    table.add_column("Name")
    table.add_column("Default model", style="bright_yellow")
    table.add_column("API key")
    table.add_column("Status")
    for spec in sorted(specs, key=lambda s: s.key):
        ready = implemented(spec.key)
        table.add_row(
            spec.key,
            spec.name,
            spec.default_model,
            "required" if spec.needs_api_key else "-",
            "[green]available[/]" if ready else "[dim]not yet implemented[/]",
        )
    return table


class ConsoleObserver(BridgeObserver):
    """Prints progress and streams each reply as it arrives."""

    def __init__(self, out: Optional[Console] = None):
        self.out = out or console

    def _name(self, agent: Agent) -> Text:
        return Text(agent.label, style=AGENT_STYLES.get(agent.label, "bold"))

    def state_changed(self, state: BridgeState) -> None:
        if state is BridgeState.CONFIGURING_AGENTS:
            self.out.print(Text("→ Initializing providers...", style="bright_blue"))
        elif state is BridgeState.HEALTH_CHECKING:
            self.out.print(Text("→ Checking provider connectivity...", style="bright_blue"))

    def agent_ready(self, agent: Agent) -> None:
        self.out.print(Text.assemble(("✓ ", "bright_green"), self._name(agent),
                                     (f" ({agent.provider.name}) ready", "bright_green")))

    def round_started(self, round_no: int, max_rounds: int, agent: Agent) -> None:
        if round_no == 1:
            section("Conversation", "💬", out=self.out)
        self.out.print()
        self.out.print(Text(f"═══ Round {round_no}/{max_rounds} ═══", style="dim"))
        self.out.print(Text.assemble(self._name(agent), (" is thinking...", "dim")))
        self.out.print(Text.assemble(self._name(agent), ": "), end="")

    def text_received(self, agent: Agent, text: str) -> None:
        self.out.print(text, end="", markup=False, soft_wrap=True)

    def round_finished(self, round_no: int, agent: Agent, reply: str) -> None:
        self.out.print()
