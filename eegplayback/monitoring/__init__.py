"""Integrity monitoring and ischemia event detection."""

from .integrity import DataIntegrityMonitor
from .conditions import MonitoredCondition, ScheduledWindowCondition, PowerDropCondition
from .events import EventDetector, DetectorState
from .aggregator import ConsoleReportPrinter

__all__ = [
    "DataIntegrityMonitor",
    "MonitoredCondition",
    "ScheduledWindowCondition",
    "PowerDropCondition",
    "EventDetector",
    "DetectorState",
    "ConsoleReportPrinter",
]
