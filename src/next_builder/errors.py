"""
Exception hierarchy for the generation-validate-repair pipeline.
"""

from typing import Dict, Optional


class NextBuilderError(Exception):
    """Base class for all builder errors."""


class ConfigError(NextBuilderError):
    """Raised when an environment setting cannot be interpreted."""


class ParseError(NextBuilderError):
    """Raised when an LLM task response is not usable structured data."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text

    @property
    def excerpt(self) -> str:
        if not self.raw_text:
            return ""
        text = self.raw_text.strip()
        return text[:200] + ("..." if len(text) > 200 else "")


class MaterializeError(NextBuilderError, OSError):
    """Raised when one or more files could not be written to disk."""

    def __init__(self, message: str, failures: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.failures = failures or {}


class IrreparableExport(NextBuilderError):
    """A missing export for which no plausible local binding exists."""

    def __init__(self, file_path: str, symbol: str, reason: str = ""):
        message = f"Cannot export '{symbol}' from {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.symbol = symbol


class LLMError(NextBuilderError):
    """Raised when no configured LLM provider returned a response."""
