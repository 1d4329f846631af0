"""Console output helpers built on rich."""

import json

from rich.console import Console


class OutputFormatter:
    """Formats user-facing messages for the terminal.

    Informational lines go to stdout, warnings and errors to stderr.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit one JSON object per message instead of text
            quiet: Suppress informational messages
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def _emit(self, console: Console, level: str, message: str, style: str) -> None:
        if self.json_output:
            console.print_json(json.dumps({"level": level, "message": message}))
        else:
            console.print(message, style=style, markup=False, soft_wrap=True)

    def info(self, message: str) -> None:
        """Print an informational message unless quiet."""
        if not self.quiet:
            self._emit(self.console, "info", message, "")

    def error(self, message: str) -> None:
        """Print an error to stderr (never suppressed)."""
        self._emit(self.err_console, "error", f"Error: {message}", "bold red")
