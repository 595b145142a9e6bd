"""
User-facing diagnostic channel.

Query-time problems are reported here instead of being raised, so a
misconfigured query shows up in the run output while the run continues.
"""

from dataclasses import dataclass
from typing import List, Optional

from . import constants


@dataclass
class Diagnostic:
    """A single recorded message"""
    level: str  # info, warning, error
    message: str
    error: Optional[Exception] = None  # ConfigError behind an error message, if any

    def __str__(self) -> str:
        prefix = constants.DIAGNOSTIC_PREFIXES.get(self.level, '[?]')
        return f"{prefix} {self.message}"


class Notifier:
    """
    Collects diagnostics and echoes them to the console.

    Every message is kept in `messages` so callers can check what was
    reported after a batch of queries.
    """

    def __init__(self, echo: Optional[bool] = None):
        """
        Args:
            echo: Override PRINT_DIAGNOSTICS constant (for testing)
        """
        self.messages: List[Diagnostic] = []
        self._echo = echo if echo is not None else constants.PRINT_DIAGNOSTICS

    def _record(self, level: str, message: str, error: Optional[Exception] = None) -> Diagnostic:
        diag = Diagnostic(level=level, message=message, error=error)
        self.messages.append(diag)
        if self._echo:
            print(diag)
        return diag

    def info(self, message: str) -> Diagnostic:
        return self._record('info', message)

    def warning(self, message: str) -> Diagnostic:
        return self._record('warning', message)

    def error(self, error) -> Diagnostic:
        """
        Report an error.

        Args:
            error: ConfigError instance or plain message string
        """
        if isinstance(error, Exception):
            return self._record('error', str(error), error)
        return self._record('error', str(error))

    @property
    def errors(self) -> List[Diagnostic]:
        return [m for m in self.messages if m.level == 'error']

    def has_errors(self) -> bool:
        return any(m.level == 'error' for m in self.messages)

    def clear(self):
        self.messages.clear()
