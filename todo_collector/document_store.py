"""
Vault document store

Thin filesystem wrapper the collector reads and writes notes through. Paths
are vault-relative and "/" separated, the same form Obsidian uses.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .collector import Document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentRef:
    path: str
    basename: str


class VaultStore:
    """Markdown notes under a vault directory"""

    def __init__(self, vault_path: Path):
        self.vault_path = Path(vault_path)

    def resolve(self, path: str) -> Path:
        return self.vault_path / Path(path)

    def relative(self, file_path: Path) -> str:
        """Vault-relative "/" path for an absolute file path (ValueError if outside)"""
        return Path(file_path).resolve().relative_to(self.vault_path.resolve()).as_posix()

    def is_note(self, relative_path: str) -> bool:
        """Markdown file outside hidden folders such as .obsidian"""
        parts = Path(relative_path).parts
        if any(part.startswith('.') for part in parts):
            return False
        return relative_path.lower().endswith('.md')

    def list_documents(self) -> List[DocumentRef]:
        refs = []
        for file_path in sorted(self.vault_path.rglob('*.md')):
            if not file_path.is_file():
                continue
            relative_path = file_path.relative_to(self.vault_path).as_posix()
            if not self.is_note(relative_path):
                continue
            refs.append(DocumentRef(path=relative_path, basename=file_path.stem))
        return refs

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def read(self, path: str) -> str:
        return self.resolve(path).read_text(encoding='utf-8')

    def write(self, path: str, text: str) -> None:
        self.resolve(path).write_text(text, encoding='utf-8')
        logger.debug("Wrote %s", path)

    def create(self, path: str, text: str) -> None:
        file_path = self.resolve(path)
        if file_path.exists():
            raise FileExistsError(f"Note already exists: {path}")
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(text, encoding='utf-8')
        logger.debug("Created %s", path)

    def load_documents(self) -> List[Document]:
        """Read every note. Unreadable notes are skipped with a warning."""
        documents = []
        for ref in self.list_documents():
            try:
                text = self.read(ref.path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable note %s: %s", ref.path, e)
                continue
            documents.append(Document(path=ref.path, basename=ref.basename, text=text))
        return documents
