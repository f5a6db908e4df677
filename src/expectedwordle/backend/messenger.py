"""
Defines a messenger system to communicate progress from the backend.

This module provides a protocol (`UIMessenger`) and the console
implementation used by the command line runner. The search engine and the
precompute runner only ever talk to the protocol, so any object with these
four methods can be passed in instead.
"""

from __future__ import annotations

from typing import Protocol
from tqdm import tqdm


class UIMessenger(Protocol):
    """Defines the interface for sending updates from the backend."""

    def log(self, message: str) -> None:
        """Logs a string message."""
        ...

    def start_progress(self, total: int, desc: str = "") -> None:
        """Starts/resets a progress bar with a new total and description."""
        ...

    def update_progress(self, advance: int = 1) -> None:
        """Advances the progress bar by a given amount."""
        ...

    def stop_progress(self) -> None:
        """Stops and cleans up the current progress bar."""
        ...


class ConsoleMessenger:
    """A messenger that prints to the console and uses a tqdm progress bar."""
    def __init__(self, quiet: bool = False):
        self.pbar: tqdm | None = None
        self.quiet = quiet

    def log(self, message: str) -> None:
        """
        Prints a message. If a progress bar is active, uses its `write`
        method to avoid interfering with the bar's display.
        """
        if self.quiet:
            return
        if self.pbar:
            self.pbar.write(message)
        else:
            print(message)

    def start_progress(self, total: int, desc: str = "") -> None:
        """
        Closes any existing progress bar and starts a new one.
        """
        if self.pbar:
            self.pbar.close()
        self.pbar = tqdm(total=total, desc=desc, disable=self.quiet)

    def update_progress(self, advance: int = 1) -> None:
        """Updates the active progress bar, if it exists."""
        if self.pbar:
            self.pbar.update(advance)

    def stop_progress(self) -> None:
        """Closes the active progress bar, if it exists."""
        if self.pbar:
            self.pbar.close()
            self.pbar = None
