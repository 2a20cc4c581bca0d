"""Console report printer for integrity reports and ischemia events.

This component is intended for console debugging. It subscribes to the
integrity and ischemia topics of one session, keeps everything it receives
and prints a rich table for each periodic report, each detected event and
the final summary.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from pubsub import pub
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models.events import EventKind, IschemiaEvent
from ..models.integrity import IntegrityCounters, IntegrityReport, IntegritySummary
from ..models.playback import EndOfRecording
from ..playback.publisher import PlaybackTopics

logger = logging.getLogger(__name__)


class ConsoleReportPrinter:
    """Prints integrity reports, ischemia events and the end-of-session summary."""

    def __init__(self, topics: PlaybackTopics, console: Optional[Console] = None):
        """Initialize report printer.

        Args:
            topics: Topics of the session to observe
            console: Rich console to print to (a new stdout console if None)
        """
        self.topics = topics
        self.console = console or Console()

        self.reports: List[IntegrityReport] = []
        self.events: List[IschemiaEvent] = []
        self.summaries: List[IntegritySummary] = []
        self.end_notices: List[EndOfRecording] = []

        self.lock = threading.RLock()

        self._subscriptions = (
            (self._on_report, topics.integrity_report),
            (self._on_summary, topics.integrity_summary),
            (self._on_ischemia, topics.ischemia),
            (self._on_end, topics.end),
        )
        for listener, topic in self._subscriptions:
            pub.subscribe(listener, topic)

        logger.info(f"ConsoleReportPrinter initialized - subscribed to {topics.root}")

    def _on_report(self, report: IntegrityReport) -> None:
        with self.lock:
            self.reports.append(report)
        self.console.print(self._counters_table(
            f"📊 Integrity report (session {report.session_number}, "
            f"{report.elapsed_recording_seconds:.1f}s)",
            report.counters,
        ))

    def _on_summary(self, summary: IntegritySummary) -> None:
        with self.lock:
            self.summaries.append(summary)

        verdict = "[bold green]✅ PASS[/]" if summary.overall_pass else "[bold red]❌ FAIL[/]"
        self.console.print(Panel(
            self._counters_table(
                f"Final integrity summary ({summary.reason}, "
                f"{summary.elapsed_recording_seconds:.1f}s)",
                summary.counters,
            ),
            title=f"Session {summary.session_number} {verdict}",
        ))
        if summary.failed_time_points:
            self.console.print(f"[red]Failed time points: "
                               f"{', '.join(f'{t:.1f}s' for t in summary.failed_time_points)}[/]")

    def _on_ischemia(self, event: IschemiaEvent) -> None:
        with self.lock:
            self.events.append(event)
        if event.kind is EventKind.START:
            self.console.print(f"[bold red]🩺 {event.condition.upper()} START[/] "
                               f"at {event.time_seconds:.2f}s")
        else:
            self.console.print(f"[bold green]✅ {event.condition.upper()} STOP[/] "
                               f"at {event.time_seconds:.2f}s")

    def _on_end(self, notice: EndOfRecording) -> None:
        with self.lock:
            self.end_notices.append(notice)
        self.console.print(f"⏹️  Session {notice.session_number} ended at "
                           f"{notice.cursor:.2f}s ({notice.reason})", style="yellow")

    def _counters_table(self, title: str, counters: IntegrityCounters) -> Table:
        table = Table(title=title)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", justify="right")

        table.add_row("Samples checked", str(counters.total_samples_checked))
        table.add_row("Valid", f"{counters.valid_count} ({counters.valid_percentage:.1f}%)")
        table.add_row("Invalid", str(counters.invalid_count))
        table.add_row("Zero", str(counters.zero_count))
        table.add_row("Mismatch", str(counters.mismatch_count))
        table.add_row("Index mismatch", str(counters.index_mismatch_count))
        return table

    def get_summary(self) -> Dict[str, Any]:
        """Get counts of everything received so far."""
        with self.lock:
            return {
                "reports": len(self.reports),
                "events": len(self.events),
                "summaries": len(self.summaries),
                "end_notices": len(self.end_notices),
            }

    def print_event_log(self) -> None:
        """Print every ischemia event received."""
        with self.lock:
            events = list(self.events)

        table = Table(title="🩺 Ischemia events")
        table.add_column("#", justify="right")
        table.add_column("Condition")
        table.add_column("Kind")
        table.add_column("Recording time (s)", justify="right")
        for i, event in enumerate(events, 1):
            table.add_row(str(i), event.condition, event.kind.value, f"{event.time_seconds:.2f}")
        self.console.print(table)

    def shutdown(self) -> bool:
        """Unsubscribe and print the event log."""
        logger.info("Shutting down ConsoleReportPrinter...")
        for listener, topic in self._subscriptions:
            try:
                pub.unsubscribe(listener, topic)
            except Exception as e:
                logger.warning(f"Error during unsubscribe: {e}")

        self.print_event_log()
        logger.info("ConsoleReportPrinter shutdown complete")
        return True
