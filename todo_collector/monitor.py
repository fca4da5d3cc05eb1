#!/usr/bin/env python3
"""
Vault monitor

Watches the vault for saved notes and runs the completed-item sweep on each
one (checked TODOs are dropped or kept according to the retention policy,
source notes get the add_todo sentinel). Optionally runs a full collection
every `interval` seconds.
"""

import asyncio
import logging
import threading
import time
from pathlib import Path
from typing import Dict, Optional

from rich.console import Console
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .todo_manager import TodoManager

console = Console()
logger = logging.getLogger(__name__)


class VaultFileHandler(FileSystemEventHandler):
    """Handle file system events for markdown files in the vault"""

    def __init__(self, manager: TodoManager, debounce_delay: float = 1.0):
        self.manager = manager
        self.store = manager.store
        self.debounce_delay = debounce_delay
        self.timers: Dict[str, threading.Timer] = {}
        self.lock = threading.Lock()
        self.processing_lock = threading.Lock()

    def relative_note_path(self, src_path: str) -> Optional[str]:
        """Vault-relative path if the event concerns a note we care about"""
        try:
            relative_path = self.store.relative(Path(src_path))
        except ValueError:
            return None
        if not self.store.is_note(relative_path):
            return None
        return relative_path

    def on_modified(self, event):
        if event.is_directory:
            return
        path = self.relative_note_path(event.src_path)
        if path:
            self.schedule(path)

    def on_created(self, event):
        self.on_modified(event)

    def on_moved(self, event):
        if event.is_directory:
            return
        path = self.relative_note_path(event.dest_path)
        if path:
            self.schedule(path)

    def schedule(self, path: str):
        """Process `path` once no further event arrived for debounce_delay seconds"""
        with self.lock:
            timer = self.timers.get(path)
            if timer and timer.is_alive():
                timer.cancel()
            timer = threading.Timer(self.debounce_delay, self.process, args=(path,))
            timer.daemon = True
            self.timers[path] = timer
            timer.start()

    def process(self, path: str) -> bool:
        with self.lock:
            self.timers.pop(path, None)
        # One note at a time; the store does not serialise writes for us
        with self.processing_lock:
            try:
                changed = self.manager.handle_change(path)
            except Exception as e:
                console.print(f"[red]Error processing {path}: {e}[/red]")
                return False
        if changed:
            console.print(f"[green]Swept completed TODOs in {path}[/green]")
        return changed

    def cancel_all(self):
        with self.lock:
            for timer in self.timers.values():
                timer.cancel()
            self.timers.clear()


class VaultMonitor:
    """Runs the watchdog observer and the optional periodic collection"""

    def __init__(self, manager: TodoManager, debounce_delay: float = 1.0, interval: Optional[float] = None):
        self.manager = manager
        self.interval = interval
        self.handler = VaultFileHandler(manager, debounce_delay)
        self.observer = None
        self.running = False
        self.last_collection = 0.0

    def start_monitoring(self):
        """Start watching and block until stopped (Ctrl+C)"""
        if self.running:
            console.print("[yellow]Monitor is already running[/yellow]")
            return

        vault_path = self.manager.store.vault_path
        console.print(f"[cyan]Starting vault monitor for: {vault_path}[/cyan]")
        self.observer = Observer()
        self.observer.schedule(self.handler, str(vault_path), recursive=True)
        self.observer.start()
        self.running = True
        console.print("[green]Vault monitor started[/green]")
        if self.interval:
            console.print(f"[cyan]Collecting TODOs every {self.interval:.0f} seconds[/cyan]")
        console.print("[yellow]Press Ctrl+C to stop[/yellow]")

        try:
            while self.running:
                self.run_scheduled_collection()
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop_monitoring()

    def run_scheduled_collection(self, now: Optional[float] = None) -> bool:
        """Run a collection pass if the interval has elapsed"""
        if not self.interval:
            return False
        now = time.monotonic() if now is None else now
        if self.last_collection and now - self.last_collection < self.interval:
            return False
        self.last_collection = now
        with self.handler.processing_lock:
            asyncio.run(self.manager.collect_and_classify())
        return True

    def stop_monitoring(self):
        """Stop the file monitoring daemon"""
        if not self.running:
            console.print("[yellow]Monitor is not running[/yellow]")
            return

        console.print("\n[yellow]Stopping vault monitor...[/yellow]")
        self.handler.cancel_all()
        if self.observer:
            self.observer.stop()
            self.observer.join()
        self.running = False
        console.print("[green]Vault monitor stopped[/green]")
