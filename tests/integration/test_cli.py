"""
CLI tests using click's CliRunner
"""
import pytest
from click.testing import CliRunner

from todo_collector.main import cli
from todo_collector.metadata_manager import is_harvested
from todo_collector.models import RetentionPolicy
from todo_collector.settings_store import SettingsStore


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, vault, *args):
    return runner.invoke(cli, ['--vault', str(vault), *args], obj={})


class TestCommands:
    def test_collect(self, runner, temp_vault, settings_store):
        result = invoke(runner, temp_vault, 'collect')

        assert result.exit_code == 0, result.output
        assert "fix bike (2024-01-02)" in result.output
        assert "- [ ] fix bike (2024-01-02)" in (temp_vault / "TODO.md").read_text(encoding='utf-8')

    def test_run_without_classification(self, runner, temp_vault, settings_store):
        result = invoke(runner, temp_vault, 'run')
        assert result.exit_code == 0, result.output
        assert (temp_vault / "TODO.md").exists()

    def test_sweep(self, runner, temp_vault, settings_store):
        (temp_vault / "TODO.md").write_text("- [x] done (a)\n- [ ] open (a)", encoding='utf-8')

        result = invoke(runner, temp_vault, 'sweep', 'TODO.md')
        assert result.exit_code == 0, result.output
        assert (temp_vault / "TODO.md").read_text(encoding='utf-8') == "- [ ] open (a)"

    def test_sweep_missing_note(self, runner, temp_vault, settings_store):
        result = invoke(runner, temp_vault, 'sweep', 'LINE/missing.md')
        assert result.exit_code == 1

    def test_test_connection_without_url(self, runner, temp_vault, settings_store):
        result = invoke(runner, temp_vault, 'test-connection')
        assert result.exit_code == 1


class TestConfigCommands:
    def test_show(self, runner, temp_vault, settings_store):
        settings_store.update(api_key="secret-key")
        result = invoke(runner, temp_vault, 'config', 'show')

        assert result.exit_code == 0, result.output
        assert "target_directories" in result.output
        assert "secret-key" not in result.output

    def test_set_values(self, runner, temp_vault, settings_store):
        assert invoke(runner, temp_vault, 'config', 'set', 'completed_todo_handling', 'delayed').exit_code == 0
        assert invoke(runner, temp_vault, 'config', 'set', 'todo_tags', '#TODO, #later').exit_code == 0
        assert invoke(runner, temp_vault, 'config', 'set', 'protect_classified_files', 'true').exit_code == 0
        assert invoke(runner, temp_vault, 'config', 'set', 'group_aliases', 'Einkauf=Shopping').exit_code == 0

        settings = SettingsStore.for_vault(temp_vault).settings
        assert settings.completed_todo_handling == RetentionPolicy.DELAYED
        assert settings.todo_tags == ["#TODO", "#later"]
        assert settings.protect_classified_files is True
        assert settings.group_aliases == {"Einkauf": "Shopping"}

    def test_set_invalid_value(self, runner, temp_vault, settings_store):
        result = invoke(runner, temp_vault, 'config', 'set', 'auto_delete_hours', '0')
        assert result.exit_code == 1
        assert SettingsStore.for_vault(temp_vault).settings.auto_delete_hours == 24

    @pytest.mark.parametrize("key", ["no_such_setting", "completed_todos"])
    def test_set_rejected_keys(self, runner, temp_vault, settings_store, key):
        result = invoke(runner, temp_vault, 'config', 'set', key, 'x')
        assert result.exit_code == 1


class TestMetadataCommands:
    def test_add_and_remove_sentinel(self, runner, temp_vault):
        note = temp_vault / "LINE" / "2024-01-02.md"

        result = runner.invoke(cli, ['metadata', 'add', str(note), 'add_todo', 'true'], obj={})
        assert result.exit_code == 0, result.output
        assert is_harvested(note.read_text(encoding='utf-8'))

        result = runner.invoke(cli, ['metadata', 'remove', str(note), 'add_todo'], obj={})
        assert result.exit_code == 0, result.output
        assert note.read_text(encoding='utf-8') == "#TODO buy milk\n#TODO fix bike\n"

    def test_show(self, runner, temp_vault):
        note = temp_vault / "LINE" / "2024-01-01.md"
        result = runner.invoke(cli, ['metadata', 'show', str(note), '--key', 'title'], obj={})
        assert result.exit_code == 0
        assert "Daily" in result.output
