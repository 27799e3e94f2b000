"""Parsers for daily log input and weekly report output."""

from .daily_log import format_weekly_log, parse_daily_log, validate_daily_log
from .report import ReportParser, parse_report

__all__ = [
    "ReportParser",
    "format_weekly_log",
    "parse_daily_log",
    "parse_report",
    "validate_daily_log",
]
