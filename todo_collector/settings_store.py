"""
Persisted collector settings

Settings live in `<vault>/.todo_collector/settings.yaml`. They are loaded
lazily on first access and written back on every update, so completion
records and the last classification time survive restarts.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from rich.console import Console

from .models import CompletedTodo, RetentionPolicy

console = Console()
logger = logging.getLogger(__name__)

SETTINGS_DIR = ".todo_collector"
SETTINGS_FILE = "settings.yaml"

DEFAULT_OUTPUT_FILE = "TODO.md"
DEFAULT_CATCH_ALL_GROUP = "Uncategorized"

# Group order used when writing a classified output note
DEFAULT_GROUPS = [
    "Shopping",
    "Development",
    "Learning",
    "Housework",
    "Work",
    "Health",
    DEFAULT_CATCH_ALL_GROUP,
]

# Group names the classification service uses out of the box, mapped onto the
# local group names above. Both sets of names land in the same group.
SERVICE_GROUP_ALIASES = {
    "買い物関連": "Shopping",
    "開発関連": "Development",
    "学習関連": "Learning",
    "家事関連": "Housework",
    "仕事関連": "Work",
    "健康関連": "Health",
    "未分類": DEFAULT_CATCH_ALL_GROUP,
}


def split_aliases(value: Any) -> Dict[str, str]:
    """Accept a mapping or "from=to, from=to"; blank entries are dropped."""
    if value is None:
        return {}
    if isinstance(value, str):
        pairs = [item.split("=", 1) for item in value.split(",") if "=" in item]
        value = {k: v for k, v in pairs}
    if not isinstance(value, dict):
        raise ValueError('group aliases must be a mapping or "from=to" pairs')
    return {str(k).strip(): str(v).strip() for k, v in value.items() if str(k).strip() and str(v).strip()}


def split_csv(value: Any) -> List[str]:
    """Accept a list or a comma-separated string; strip and drop blanks."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [str(item).strip() for item in value if str(item).strip()]


class Settings(BaseModel):
    """Collector configuration passed explicitly to every core operation"""
    target_directories: List[str] = Field(default_factory=list)
    todo_tags: List[str] = Field(default_factory=lambda: ["#TODO", "#t"])
    completed_todo_handling: RetentionPolicy = RetentionPolicy.IMMEDIATE
    auto_delete_hours: int = 24
    completed_todos: List[CompletedTodo] = Field(default_factory=list)
    classification_url: str = ""
    enable_ai_classification: bool = False
    api_key: str = ""
    output_file_path: str = DEFAULT_OUTPUT_FILE
    protect_classified_files: bool = False
    last_classification_time: int = 0  # epoch millis
    protection_hours: int = 24
    groups: List[str] = Field(default_factory=lambda: list(DEFAULT_GROUPS))
    catch_all_group: str = DEFAULT_CATCH_ALL_GROUP
    # classifier group name -> group name in the output note
    group_aliases: Dict[str, str] = Field(default_factory=lambda: dict(SERVICE_GROUP_ALIASES))

    @field_validator('target_directories', 'todo_tags', 'groups', mode='before')
    @classmethod
    def split_comma_separated(cls, v: Any) -> List[str]:
        return split_csv(v)

    @field_validator('group_aliases', mode='before')
    @classmethod
    def parse_aliases(cls, v: Any) -> Dict[str, str]:
        return split_aliases(v)

    @field_validator('output_file_path', 'classification_url', 'catch_all_group')
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator('auto_delete_hours', 'protection_hours')
    @classmethod
    def hours_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError('hours must be greater than 0')
        return v

    @model_validator(mode='after')
    def catch_all_in_groups(self):
        """The catch-all group always has a slot in the group order"""
        if self.catch_all_group and self.catch_all_group not in self.groups:
            self.groups.append(self.catch_all_group)
        return self

    @property
    def retention_ms(self) -> int:
        return self.auto_delete_hours * 3600 * 1000

    @property
    def output_path(self) -> str:
        return self.output_file_path or DEFAULT_OUTPUT_FILE


class SettingsStore:
    """Loads settings once and persists them after each mutation"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._settings: Optional[Settings] = None

    @classmethod
    def for_vault(cls, vault_path: Path) -> 'SettingsStore':
        return cls(Path(vault_path) / SETTINGS_DIR / SETTINGS_FILE)

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = self._load()
        return self._settings

    def _load(self) -> Settings:
        if not self.path.exists():
            return Settings()

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            console.print(f"[yellow]Warning: Could not read settings {self.path}: {e}, using defaults[/yellow]")
            return Settings()

        if not isinstance(raw, dict):
            logger.warning("Settings file %s is not a mapping, using defaults", self.path)
            return Settings()

        # Unknown keys are ignored so older/newer files still load
        known = {k: v for k, v in raw.items() if k in Settings.model_fields}
        try:
            return Settings(**known)
        except ValidationError as e:
            console.print(f"[yellow]Warning: Invalid settings in {self.path}: {e}[/yellow]")
            return Settings()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = self.settings.model_dump(mode='json')
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False)
        logger.debug("Saved settings to %s", self.path)

    def update(self, **changes: Any) -> Settings:
        """Apply changes (validated) and persist immediately."""
        data: Dict[str, Any] = self.settings.model_dump()
        data.update(changes)
        self._settings = Settings(**data)
        self.save()
        return self._settings
