"""
User-visible notifications, printed with rich
"""

from typing import List, Optional

from rich.console import Console


class Notifier:
    """Prints one-line status messages and keeps them for inspection"""

    STYLES = {
        'info': 'cyan',
        'success': 'green',
        'warning': 'yellow',
        'error': 'red',
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.messages: List[tuple[str, str]] = []

    def notify(self, message: str, level: str = 'info') -> None:
        self.messages.append((level, message))
        style = self.STYLES.get(level, 'white')
        self.console.print(message, style=style, markup=False)

    def info(self, message: str) -> None:
        self.notify(message, 'info')

    def success(self, message: str) -> None:
        self.notify(message, 'success')

    def warning(self, message: str) -> None:
        self.notify(message, 'warning')

    def error(self, message: str) -> None:
        self.notify(message, 'error')
