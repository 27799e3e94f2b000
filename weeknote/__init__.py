"""weeknote: turn daily work logs into structured weekly reports."""

from .generator import GenerateOptions, ReportGenerator, generate_report, generate_report_stream
from .llm import ErrorType, GeneratorError, ModelManager
from .parsing import parse_daily_log, parse_report, validate_daily_log
from .prompting import PromptBuilder

__all__ = [
    "ErrorType",
    "GenerateOptions",
    "GeneratorError",
    "ModelManager",
    "PromptBuilder",
    "ReportGenerator",
    "generate_report",
    "generate_report_stream",
    "parse_daily_log",
    "parse_report",
    "validate_daily_log",
]
