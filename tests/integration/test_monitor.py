"""
Tests for the vault monitor's event handling
"""
import time

from watchdog.events import FileModifiedEvent, FileMovedEvent

from todo_collector.monitor import VaultFileHandler, VaultMonitor
from todo_collector.todo_manager import RunStatus


class TestVaultFileHandler:
    def test_relative_note_path(self, manager, temp_vault):
        handler = VaultFileHandler(manager)
        assert handler.relative_note_path(str(temp_vault / "LINE" / "a.md")) == "LINE/a.md"
        assert handler.relative_note_path(str(temp_vault / ".obsidian" / "workspace.md")) is None
        assert handler.relative_note_path(str(temp_vault / "LINE" / "image.png")) is None
        assert handler.relative_note_path("/somewhere/else/note.md") is None

    def test_events_schedule_notes(self, manager, temp_vault):
        handler = VaultFileHandler(manager)
        scheduled = []
        handler.schedule = scheduled.append

        handler.on_modified(FileModifiedEvent(str(temp_vault / "TODO.md")))
        handler.on_modified(FileModifiedEvent(str(temp_vault / "notes.txt")))
        handler.on_moved(FileMovedEvent(str(temp_vault / "draft.tmp"), str(temp_vault / "LINE" / "b.md")))

        assert scheduled == ["TODO.md", "LINE/b.md"]

    def test_process_sweeps_note(self, manager, temp_vault):
        (temp_vault / "TODO.md").write_text("- [x] done (a)\n- [ ] open (a)", encoding='utf-8')
        handler = VaultFileHandler(manager)

        assert handler.process("TODO.md")
        assert (temp_vault / "TODO.md").read_text(encoding='utf-8') == "- [ ] open (a)"
        assert not handler.process("TODO.md")

    def test_debounced_schedule(self, manager, temp_vault):
        (temp_vault / "TODO.md").write_text("- [x] done (a)\n- [ ] open (a)", encoding='utf-8')
        handler = VaultFileHandler(manager, debounce_delay=0.05)

        handler.schedule("TODO.md")
        handler.schedule("TODO.md")
        assert len(handler.timers) == 1

        deadline = time.time() + 5
        while time.time() < deadline:
            if (temp_vault / "TODO.md").read_text(encoding='utf-8') == "- [ ] open (a)":
                break
            time.sleep(0.05)
        assert (temp_vault / "TODO.md").read_text(encoding='utf-8') == "- [ ] open (a)"


class TestVaultMonitor:
    def test_scheduled_collection(self, manager, temp_vault):
        calls = []
        original = manager.collect_and_classify

        async def counting():
            result = await original()
            calls.append(result.status)
            return result

        manager.collect_and_classify = counting
        monitor = VaultMonitor(manager, interval=60)

        assert monitor.run_scheduled_collection(now=1000.0)
        assert not monitor.run_scheduled_collection(now=1030.0)
        assert monitor.run_scheduled_collection(now=1060.0)
        assert calls == [RunStatus.COMPLETED, RunStatus.NOTHING_NEW]
        assert (temp_vault / "TODO.md").exists()

    def test_no_interval(self, manager):
        assert not VaultMonitor(manager).run_scheduled_collection(now=1000.0)
