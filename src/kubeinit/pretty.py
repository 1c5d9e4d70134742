"""Color-coded console output."""

from rich.console import Console

INFO_STYLE = "bold bright_green"
WARN_STYLE = "bold bright_yellow"
ERROR_STYLE = "bold bright_red"


class PrettyPrinter:
    """Prints info, warning and error lines in their own colors."""

    def __init__(
        self,
        console: Console | None = None,
        info_style: str = INFO_STYLE,
        warn_style: str = WARN_STYLE,
        error_style: str = ERROR_STYLE,
    ):
        self.console = console or Console()
        self.info_style = info_style
        self.warn_style = warn_style
        self.error_style = error_style

    def info(self, message: str) -> None:
        self.console.print(message, style=self.info_style, markup=False, highlight=False)

    def warning(self, message: str) -> None:
        self.console.print(message, style=self.warn_style, markup=False, highlight=False)

    def error(self, message: str) -> None:
        self.console.print(message, style=self.error_style, markup=False, highlight=False)

