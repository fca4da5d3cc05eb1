"""
Unit tests for completed-item retention
"""
from todo_collector.lifecycle import is_expired, prune_records, rebuild_output, record_completions, sweep_document
from todo_collector.models import CompletedTodo, RetentionPolicy
from todo_collector.settings_store import Settings

NOW = 1704067200000
HOUR = 3600 * 1000


class TestRecordCompletions:
    def test_new_checked_lines_recorded(self):
        records = record_completions(["- [x] done (a)", "- [ ] open (a)"], [], NOW)
        assert records == [CompletedTodo(text="done (a)", completed_at=NOW)]

    def test_existing_record_not_touched(self):
        old = CompletedTodo(text="done (a)", completed_at=NOW - HOUR)
        assert record_completions(["- [x] done (a)"], [old], NOW) == [old]


class TestExpiry:
    def test_boundary_is_expired(self):
        record = CompletedTodo(text="x", completed_at=NOW - 24 * HOUR)
        assert is_expired(record, NOW, 24 * HOUR)
        assert not is_expired(record, NOW - 1, 24 * HOUR)

    def test_keep_never_prunes(self):
        records = [CompletedTodo(text="x", completed_at=0)]
        assert prune_records(records, RetentionPolicy.KEEP, NOW, HOUR) == records

    def test_immediate_prunes_everything(self):
        records = [CompletedTodo(text="x", completed_at=NOW)]
        assert prune_records(records, RetentionPolicy.IMMEDIATE, NOW, 24 * HOUR) == []


class TestRebuildOutput:
    existing = ["- [ ] open (a)", "- [x] done (a)", "some note text", "- [ ] open (a)"]

    def test_immediate_drops_checked(self):
        lines, records = rebuild_output(self.existing, ["- [ ] new (b)"], [], RetentionPolicy.IMMEDIATE, NOW, 24)
        assert lines == ["- [ ] open (a)", "- [ ] new (b)"]
        assert records == []

    def test_delayed_keeps_until_expiry(self):
        lines, records = rebuild_output(self.existing, ["- [ ] new (b)"], [], RetentionPolicy.DELAYED, NOW, 24)
        assert lines == ["- [x] done (a)", "- [ ] open (a)", "- [ ] new (b)"]
        assert records == [CompletedTodo(text="done (a)", completed_at=NOW)]

        later = NOW + 24 * HOUR
        lines, records = rebuild_output(lines, [], records, RetentionPolicy.DELAYED, later, 24)
        assert lines == ["- [ ] open (a)", "- [ ] new (b)"]
        assert records == []

    def test_keep_retains_forever(self):
        records = [CompletedTodo(text="done (a)", completed_at=0)]
        lines, records = rebuild_output(self.existing, [], records, RetentionPolicy.KEEP, NOW, 24)
        assert lines == ["- [x] done (a)", "- [ ] open (a)"]
        assert len(records) == 1

    def test_new_duplicate_of_existing_collapsed(self):
        lines, _ = rebuild_output(["- [ ] open (a)"], ["- [ ] open (a)"], [], RetentionPolicy.IMMEDIATE, NOW, 24)
        assert lines == ["- [ ] open (a)"]

    def test_policy_as_string(self):
        lines, _ = rebuild_output(["- [x] done (a)"], [], [], "keep", NOW, 24)
        assert lines == ["- [x] done (a)"]


class TestSweepDocument:
    output = "## Work\n\n- [x] send invoice (inbox)\n- [ ] call bank (inbox)\n"

    def test_output_immediate(self):
        settings = Settings(completed_todo_handling="immediate")
        result = sweep_document(self.output, "TODO.md", settings, NOW)
        assert result.text == "## Work\n\n- [ ] call bank (inbox)\n"
        assert result.records == []

    def test_output_delayed_is_idempotent(self):
        settings = Settings(completed_todo_handling="delayed")
        first = sweep_document(self.output, "TODO.md", settings, NOW)
        assert first.text == self.output
        assert first.records == [CompletedTodo(text="send invoice (inbox)", completed_at=NOW)]

        settings = settings.model_copy(update={"completed_todos": first.records})
        second = sweep_document(first.text, "TODO.md", settings, NOW + HOUR)
        assert second.text == first.text
        assert second.records == first.records

    def test_output_delayed_expired(self):
        records = [CompletedTodo(text="send invoice (inbox)", completed_at=NOW - 25 * HOUR)]
        settings = Settings(completed_todo_handling="delayed", completed_todos=records)
        result = sweep_document(self.output, "TODO.md", settings, NOW)
        assert "send invoice" not in result.text
        assert result.records == []

    def test_source_note_immediate(self):
        settings = Settings(completed_todo_handling="immediate")
        result = sweep_document("- [x] done\n- [ ] open\n", "LINE/a.md", settings, NOW)
        assert result.text == "---\nadd_todo: true\n---\n- [ ] open\n"
        # completions in source notes are not tracked
        assert result.records == []

    def test_source_note_delayed_keeps_lines(self):
        settings = Settings(completed_todo_handling="delayed")
        result = sweep_document("- [x] done\n", "LINE/a.md", settings, NOW)
        assert result.text == "---\nadd_todo: true\n---\n- [x] done\n"

        again = sweep_document(result.text, "LINE/a.md", settings, NOW)
        assert not again.changed(result.text)

    def test_nothing_checked_unchanged(self):
        text = "- [ ] open\n"
        result = sweep_document(text, "LINE/a.md", Settings(), NOW)
        assert not result.changed(text)


def test_expired_record_removed_from_rebuilt_output():
    """delayed, one hour retention, two-hour-old record: the line is gone"""
    records = [CompletedTodo(text="old task", completed_at=NOW - 2 * HOUR)]
    lines, records = rebuild_output(["- [x] old task"], [], records, RetentionPolicy.DELAYED, NOW, 1)
    assert lines == []
    assert records == []
