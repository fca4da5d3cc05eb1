"""
TODO collection and classification workflows

TodoManager runs the collector against a vault:

    manager = TodoManager(VaultStore(vault), SettingsStore.for_vault(vault))
    manager.collect_todos()                    # flat output note
    await manager.collect_and_classify()       # grouped via the classification service
    manager.handle_change("TODO.md")           # after a note was saved

Every workflow returns a RunResult; errors are turned into a single
notification and never escape, so the next run can simply be retried.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .classification import ClassificationClient
from .collector import CollectionResult, collect, matches_directory, normalize_path
from .config_loader import ConfigLoader
from .document_store import VaultStore
from .errors import ClassificationError, ConfigurationError, ProtectionError
from .lifecycle import rebuild_output, sweep_document
from .notifier import Notifier
from .reconcile import fallback, parse_groups, reconcile_classification
from .settings_store import Settings, SettingsStore

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class RunStatus(str, Enum):
    COMPLETED = "completed"
    FALLBACK = "fallback"          # written, but new items went to the catch-all group
    NOTHING_NEW = "nothing_new"
    PROTECTED = "protected"
    CONFIG_ERROR = "config_error"
    FAILED = "failed"


@dataclass
class RunResult:
    status: RunStatus
    new_todos: List[str] = field(default_factory=list)
    written: List[str] = field(default_factory=list)
    message: str = ""


class TodoManager:
    """Collects TODOs from a vault and keeps the output note up to date"""

    def __init__(
        self,
        store: VaultStore,
        settings_store: SettingsStore,
        notifier: Optional[Notifier] = None,
        classifier=None,
        config: Optional[ConfigLoader] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            store: vault the notes are read from and written to
            settings_store: persisted collector settings
            notifier: where user-visible messages go
            classifier: object with `async classify(new_lines, existing_groups)`;
                built from settings when not given
            config: .env/config.yaml loader used for the credential and timeout
            clock: epoch-millis clock
        """
        self.store = store
        self.settings_store = settings_store
        self.notifier = notifier or Notifier()
        self.classifier = classifier
        self.config = config
        self.clock = clock

    @property
    def settings(self) -> Settings:
        return self.settings_store.settings

    # ==================== Checks ====================

    def api_key(self) -> str:
        if self.settings.api_key:
            return self.settings.api_key
        if self.config is not None:
            return self.config.get_gemini_api_key() or ""
        return ""

    def classification_url(self) -> str:
        if self.settings.classification_url:
            return self.settings.classification_url
        if self.config is not None:
            return self.config.get_classification_url() or ""
        return ""

    def classification_enabled(self) -> bool:
        return self.settings.enable_ai_classification and bool(self.classification_url())

    def check_config(self, require_classifier: bool = False) -> None:
        """Raise ConfigurationError before any I/O if a required setting is missing."""
        settings = self.settings
        if not settings.output_file_path:
            raise ConfigurationError("Output file path is not set")
        if require_classifier:
            if not self.classification_url():
                raise ConfigurationError("Classification endpoint URL is not set")
            if self.classifier is None and not self.api_key():
                raise ConfigurationError("Classification credential is not set (api_key or GEMINI_API_KEY)")

    def check_protection(self, now: int) -> None:
        """Refuse to touch anything while the classified output is protected."""
        settings = self.settings
        if not settings.protect_classified_files or settings.last_classification_time <= 0:
            return
        window = settings.protection_hours * 3600 * 1000
        elapsed = now - settings.last_classification_time
        if elapsed < window:
            raise ProtectionError(settings.protection_hours, window - elapsed)

    def _get_classifier(self):
        if self.classifier is None:
            timeout = self.config.get_classification_timeout() if self.config else 60.0
            self.classifier = ClassificationClient(
                self.classification_url(), self.api_key(), timeout=timeout
            )
        return self.classifier

    # ==================== I/O helpers ====================

    def _read_output(self) -> str:
        path = self.settings.output_path
        if self.store.exists(path):
            return self.store.read(path)
        return ""

    def _write_output(self, text: str) -> None:
        path = self.settings.output_path
        if self.store.exists(path):
            self.store.write(path, text)
        else:
            self.store.create(path, text)

    def _write_mutations(self, mutations: Dict[str, str]) -> List[str]:
        """Mark harvested notes. Notes already written stay written if a later one fails."""
        written = []
        for path, text in mutations.items():
            self.store.write(path, text)
            written.append(path)
        return written

    def _collect(self) -> tuple[str, CollectionResult]:
        existing = self._read_output()
        result = collect(self.store.load_documents(), self.settings, existing)
        return existing, result

    def _write_ungrouped(self, existing: str, result: CollectionResult, now: int) -> None:
        """Write the output without classification.

        A note that already has group headers keeps them and gets the new
        items in the catch-all group; a flat note is rebuilt flat.
        """
        settings = self.settings
        swept = sweep_document(existing, settings.output_path, settings, now)
        if any(line.startswith('## ') for line in swept.text.split('\n')):
            text = fallback(
                swept.text, result.new_lines, settings.groups, settings.catch_all_group, settings.group_aliases
            )
            records = swept.records
        else:
            final_lines, records = rebuild_output(
                existing.split('\n'),
                result.new_lines,
                settings.completed_todos,
                settings.completed_todo_handling,
                now,
                settings.auto_delete_hours,
            )
            text = '\n'.join(final_lines)
        self._write_output(text)
        self.settings_store.update(completed_todos=records)

    # ==================== Workflows ====================

    def collect_todos(self) -> RunResult:
        """Collect new TODOs into the output note without classification."""
        now = self.clock()
        try:
            self.check_config()
            self.check_protection(now)
            existing, result = self._collect()
            self._write_ungrouped(existing, result, now)
            written = [self.settings.output_path, *self._write_mutations(result.mutations)]
        except ConfigurationError as e:
            return self._config_error(e)
        except ProtectionError as e:
            return self._protected(e)
        except OSError as e:
            return self._failed(f"TODO collection failed: {e}")

        message = f"Collected {len(result.new_lines)} new TODOs into {self.settings.output_path}"
        self.notifier.success(message)
        return RunResult(RunStatus.COMPLETED, result.new_lines, written, message)

    async def collect_and_classify(self) -> RunResult:
        """Collect new TODOs and merge them into the grouped output note.

        Nothing is written until the classification call has answered, so a
        transport failure leaves every note as it was.
        """
        now = self.clock()
        use_classifier = self.classification_enabled()
        try:
            self.check_config(require_classifier=use_classifier)
            self.check_protection(now)
            self.notifier.info("Collecting TODOs...")
            existing, result = self._collect()
        except ConfigurationError as e:
            return self._config_error(e)
        except ProtectionError as e:
            return self._protected(e)
        except OSError as e:
            return self._failed(f"TODO collection failed: {e}")

        if not result.new_lines:
            message = "No new TODOs collected"
            self.notifier.info(message)
            return RunResult(RunStatus.NOTHING_NEW, message=message)

        self.notifier.success(f"Collected {len(result.new_lines)} TODOs")

        if not use_classifier:
            try:
                self._write_ungrouped(existing, result, now)
                written = [self.settings.output_path, *self._write_mutations(result.mutations)]
            except OSError as e:
                return self._failed(f"TODO collection failed: {e}")
            message = "AI classification is disabled; collected TODOs were written to the output note"
            self.notifier.info(message)
            return RunResult(RunStatus.COMPLETED, result.new_lines, written, message)

        return await self._classify_and_write(existing, result, now)

    async def _classify_and_write(self, existing: str, result: CollectionResult, now: int) -> RunResult:
        settings = self.settings
        swept = sweep_document(existing, settings.output_path, settings, now)
        existing_groups = parse_groups(swept.text, settings.catch_all_group)

        self.notifier.info(f"Classifying {len(result.new_lines)} new TODOs...")
        try:
            raw = await self._get_classifier().classify(result.new_lines, existing_groups)
        except ClassificationError as e:
            detail = f" - {e.body}" if e.body else ""
            return self._failed(f"Classification failed: {e}{detail}")
        except ConfigurationError as e:
            return self._config_error(e)

        if raw is None:
            merged = fallback(
                swept.text, result.new_lines, settings.groups, settings.catch_all_group, settings.group_aliases
            )
            used_fallback = True
        else:
            merged, used_fallback = reconcile_classification(
                swept.text, raw, result.new_lines, settings.groups, settings.catch_all_group,
                settings.group_aliases,
            )

        try:
            self._write_output(merged)
            written = [settings.output_path, *self._write_mutations(result.mutations)]
        except OSError as e:
            return self._failed(f"Writing classified TODOs failed: {e}")

        if used_fallback:
            self.settings_store.update(completed_todos=swept.records)
            message = (
                f"Classification result was unusable; kept existing TODOs and added new ones "
                f"to {settings.catch_all_group}"
            )
            self.notifier.warning(message)
            return RunResult(RunStatus.FALLBACK, result.new_lines, written, message)

        self.settings_store.update(completed_todos=swept.records, last_classification_time=now)
        message = "TODO classification completed"
        self.notifier.success(message)
        return RunResult(RunStatus.COMPLETED, result.new_lines, written, message)

    def is_sweep_target(self, path: str) -> bool:
        """Output note or a note under a target directory"""
        settings = self.settings
        if normalize_path(path) == normalize_path(settings.output_path):
            return True
        return any(matches_directory(path, directory) for directory in settings.target_directories)

    def handle_change(self, path: str) -> bool:
        """Apply the completed-item sweep to a note that was just saved.

        Writes only when the sweep changed the note; the sweep is idempotent,
        so the change event fired by that write is a no-op.

        Returns:
            True if the note was rewritten
        """
        if not self.store.is_note(path) or not self.is_sweep_target(path):
            return False
        try:
            text = self.store.read(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read changed note %s: %s", path, e)
            return False

        result = sweep_document(text, path, self.settings, self.clock())
        if result.records != self.settings.completed_todos:
            self.settings_store.update(completed_todos=result.records)
        if not result.changed(text):
            return False

        try:
            self.store.write(path, result.text)
        except OSError as e:
            logger.error("Could not rewrite %s: %s", path, e)
            return False
        logger.info("Swept completed TODOs in %s", path)
        return True

    async def test_connection(self) -> bool:
        """Check the classification endpoint and report what came back."""
        if self.classifier is None and not self.classification_url():
            self.notifier.error("Classification endpoint URL is not set")
            return False

        self.notifier.info("Testing connection to classification service...")
        try:
            result = await self._get_classifier().test_connection()
        except ClassificationError as e:
            self.notifier.error(f"Connection failed: {e}")
            return False

        lines = ["Connected to classification service"]
        if result.is_valid_json:
            lines.append("JSON response confirmed")
            if result.json_structure and 'groups' in str(result.json_structure):
                if result.groups_count > 0:
                    lines.append(f"Classified into {result.groups_count} groups")
                else:
                    lines.append("Warning: no groups in test classification")
            else:
                lines.append("Warning: unexpected JSON structure")
        else:
            lines.append("Warning: response is not JSON")
        if result.classified_content:
            lines.append(f"Preview: {result.classified_content[:100]}...")
        self.notifier.success('\n'.join(lines))
        return True

    # ==================== Error reporting ====================

    def _config_error(self, error: ConfigurationError) -> RunResult:
        self.notifier.error(f"Configuration error: {error}")
        return RunResult(RunStatus.CONFIG_ERROR, message=str(error))

    def _protected(self, error: ProtectionError) -> RunResult:
        message = f"Classified TODOs are protected (within {error.hours} hours of the last classification)"
        self.notifier.warning(message)
        return RunResult(RunStatus.PROTECTED, message=message)

    def _failed(self, message: str) -> RunResult:
        logger.error(message)
        self.notifier.error(message)
        return RunResult(RunStatus.FAILED, message=message)
