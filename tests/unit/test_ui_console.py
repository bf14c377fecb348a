# tests/unit/test_ui_console.py

from __future__ import annotations
import sys
from pathlib import Path
from rich.console import Console

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import chat_bridge.ui.console as ui  # import the module to monkeypatch
from chat_bridge.core.bridge_session import Agent, BridgeState
from chat_bridge.core.ports import ProviderSpec
from chat_bridge.providers.echo import EchoProvider


def recording_console(width=100):
    return Console(record=True, width=width, color_system=None, highlight=False)


def test_banner_font_follows_width(monkeypatch):
    chosen = []

    def fake_figlet(title, font=None):
        chosen.append((title, font))
        return "ART"

    monkeypatch.setattr(ui, "figlet_format", fake_figlet, raising=True)

    ui.render_banner("v1.0.0", out=recording_console(width=120))
    ui.render_banner(None, out=recording_console(width=60))

    assert chosen == [("Chat Bridge", "standard"), ("Chat Bridge", "small")]


def test_banner_shows_version_and_subtitle(monkeypatch):
    monkeypatch.setattr(ui, "figlet_format", lambda t, font=None: "ART", raising=True)
    out = recording_console()
    ui.render_banner("v1.0.0", out=out)
    text = out.export_text()
    assert "ART" in text
    assert "v1.0.0" in text
    assert "Connect two AI assistants" in text


def test_providers_table_marks_status():
    specs = [
        ProviderSpec(key="openai", name="OpenAI", default_model="gpt-4o-mini"),
        ProviderSpec(key="anthropic", name="Anthropic", default_model="claude"),
        ProviderSpec(key="echo", name="Echo", needs_api_key=False),
    ]
    out = recording_console(width=140)
    out.print(ui.providers_table(specs, lambda key: key != "anthropic"))
    rows = {line.split()[1]: line for line in out.export_text().splitlines()
            if len(line.split()) > 1 and line.split()[1] in ("openai", "anthropic", "echo")}
    assert "not yet implemented" in rows["anthropic"]
    assert "available" in rows["openai"]
    assert "required" in rows["openai"]
    assert "required" not in rows["echo"]


def test_console_observer_transcript():
    out = recording_console()
    obs = ui.ConsoleObserver(out)
    agent = Agent("Agent A", EchoProvider(), 0.7)

    obs.state_changed(BridgeState.CONFIGURING_AGENTS)
    obs.state_changed(BridgeState.HEALTH_CHECKING)
    obs.agent_ready(agent)
    obs.round_started(1, 3, agent)
    obs.text_received(agent, "[bold]not markup[/bold]")
    obs.text_received(agent, " tail")
    obs.round_finished(1, agent, "[bold]not markup[/bold] tail")
    obs.state_changed(BridgeState.FINISHED)

    text = out.export_text()
    assert "Initializing providers..." in text
    assert "Checking provider connectivity..." in text
    assert "✓ Agent A (echo) ready" in text
    assert "CONVERSATION" in text
    assert "═══ Round 1/3 ═══" in text
    assert "Agent A is thinking..." in text
    # replies are printed literally, never as rich markup
    assert "Agent A: [bold]not markup[/bold] tail" in text


def test_section_header_only_on_first_round():
    out = recording_console()
    obs = ui.ConsoleObserver(out)
    agent = Agent("Agent B", EchoProvider(), 0.7)
    obs.round_started(2, 3, agent)
    assert "CONVERSATION" not in out.export_text()
