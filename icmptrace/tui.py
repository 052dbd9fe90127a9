"""Interactive Textual TUI for icmptrace."""

from __future__ import annotations

import io
from typing import Optional

from rich.console import Console
from rich.text import Text
from textual import on, work
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Footer, Input, Label, Static

from ._config import TraceConfig
from ._models import HopStatus, ProbeOutcome
from ._exchange import exchange
from ._traceroute import ProbeFunc, format_durations, traceroute

COLUMNS = ("Hop", "Durations", "Status", "Peers")


def _reset_table(table: DataTable, columns: tuple[str, ...]) -> None:
    """Clear table contents while ensuring columns remain present."""

    table.clear()
    if not getattr(table, "columns", None):
        table.add_columns(*columns)


def _status_text(outcome: ProbeOutcome) -> str:
    if outcome.status is HopStatus.REACHED:
        return "Reached"
    if outcome.status is HopStatus.TTL_EXCEEDED:
        return "TTLExc at"
    return f"ERROR: {outcome.error}"


class TracerouteView(Vertical):
    """Traceroute form and hop table."""

    def __init__(
        self,
        target: str,
        config: TraceConfig,
        *,
        probe: ProbeFunc = exchange,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._target = target
        self._config = config
        self._probe = probe
        self._running = False
        self.summary = ""

    def compose(self) -> ComposeResult:
        with Vertical(id="traceroute-form"):
            yield Label(" Target")
            yield Input(placeholder="8.8.8.8", id="traceroute-target", value=self._target)
            with Horizontal(id="traceroute-options"):
                with Vertical():
                    yield Label("Max TTL")
                    yield Input(
                        placeholder=str(self._config.max_ttl),
                        id="traceroute-max-ttl",
                        compact=True,
                    )
                with Vertical():
                    yield Label("Attempts")
                    yield Input(
                        placeholder=str(self._config.attempts),
                        id="traceroute-attempts",
                        compact=True,
                    )
                with Vertical():
                    yield Label("Timeout")
                    yield Input(
                        placeholder=str(self._config.timeout),
                        id="traceroute-timeout",
                        compact=True,
                    )
            yield Button("Run Traceroute", id="traceroute-run", flat=True)
        table = DataTable(id="traceroute-table")
        table.add_columns(*COLUMNS)
        yield table
        yield Static(id="traceroute-summary")

    def _read_config(self) -> TraceConfig:
        max_ttl = self.query_one("#traceroute-max-ttl", Input).value
        attempts = self.query_one("#traceroute-attempts", Input).value
        timeout = self.query_one("#traceroute-timeout", Input).value
        changes: dict[str, object] = {}
        if max_ttl:
            changes["max_ttl"] = int(max_ttl)
        if attempts:
            changes["attempts"] = int(attempts)
        if timeout:
            changes["timeout"] = float(timeout)
        return self._config.replace(**changes)

    @on(Button.Pressed, "#traceroute-run")
    def run_traceroute(self) -> None:  # noqa: D401
        target = self.query_one("#traceroute-target", Input).value.strip()
        if not target:
            self.notify("Please enter a target address.")
            return
        if self._running:
            self.app.bell()
            return
        try:
            config = self._read_config()
        except ValueError as exc:
            self.notify(f"Invalid option: {exc}", severity="error")
            return

        _reset_table(self.query_one("#traceroute-table", DataTable), COLUMNS)
        self.query_one("#traceroute-summary", Static).update(f"Tracing {target}...")
        self._running = True
        self.perform_traceroute(target, config)

    @work(thread=True, exclusive=True)
    def perform_traceroute(self, target: str, config: TraceConfig) -> None:
        """Walk the route in a worker thread, pushing rows as hops finish."""
        app = self.app
        summary = ""
        try:
            result = traceroute(
                target,
                config,
                console=Console(file=io.StringIO()),
                probe=self._probe,
                on_hop=lambda outcome, line: app.call_from_thread(
                    self._add_hop, outcome, line
                ),
            )
            summary = result.lines[-1]
        except Exception as error:
            summary = f"Error: {error}"
            app.call_from_thread(app.bell)
        finally:
            app.call_from_thread(self._finish, summary)

    def _add_hop(self, outcome: ProbeOutcome, line: str) -> None:
        table = self.query_one("#traceroute-table", DataTable)
        if outcome.status is HopStatus.ERROR:
            peers = ""
        else:
            peers = line.partition(f"{_status_text(outcome)} ")[2]
        table.add_row(
            str(outcome.ttl),
            format_durations(outcome.durations) if outcome.attempts else "-",
            Text(_status_text(outcome)),
            Text(peers),
        )
        table.move_cursor(row=table.row_count - 1, scroll=True)

    def _finish(self, summary: str) -> None:
        self._running = False
        self.summary = summary
        self.query_one("#traceroute-summary", Static).update(Text(summary))


class TracerouteApp(App):
    """Textual application hosting a single traceroute view."""

    DEFAULT_CSS = """
    #traceroute-form {
        height: auto;
        padding: 0 1;
    }
    #traceroute-options {
        height: auto;
    }
    #traceroute-table {
        height: 1fr;
    }
    #traceroute-summary {
        height: 1;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        target: str = "8.8.8.8",
        config: Optional[TraceConfig] = None,
        *,
        probe: ProbeFunc = exchange,
    ) -> None:
        super().__init__()
        self.trace_target = target
        self.trace_config = config or TraceConfig()
        self.trace_probe = probe

    def compose(self) -> ComposeResult:
        yield TracerouteView(
            self.trace_target,
            self.trace_config,
            probe=self.trace_probe,
            id="traceroute",
        )
        yield Footer()


if __name__ == "__main__":
    app = TracerouteApp()
    app.run()
