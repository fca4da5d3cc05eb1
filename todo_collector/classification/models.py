"""
Pydantic models for the classification service wire format
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import TodoItem


class ClassifiedTodo(BaseModel):
    """One item inside a JSON `groups` answer"""
    text: str
    completed: bool = False
    source: Optional[str] = None

    @field_validator('text')
    @classmethod
    def text_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('text must not be empty')
        return v.strip()

    @field_validator('source')
    @classmethod
    def blank_source_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    def render(self) -> str:
        return TodoItem(text=self.text, source=self.source, completed=self.completed).render()


class ClassificationRequest(BaseModel):
    """Body POSTed to the classification endpoint"""
    model_config = ConfigDict(populate_by_name=True)

    action: str = "classify"
    content: str
    # group name -> rendered checkbox lines, as they appear in the output note
    existing_groups: Dict[str, List[str]] = Field(default_factory=dict, alias='existingGroups')
    api_key: str = Field(default="", alias='geminiApiKey')


class ClassificationResponse(BaseModel):
    """Successful answer; `classifiedContent` may be missing or empty"""
    model_config = ConfigDict(populate_by_name=True)

    classified_content: Optional[str] = Field(default=None, alias='classifiedContent')


class ConnectionTestResult(BaseModel):
    """Answer to an `action: test` request. All fields are optional diagnostics."""
    model_config = ConfigDict(populate_by_name=True)

    is_valid_json: bool = False
    json_structure: Any = None
    groups_count: int = 0
    classified_content: Optional[str] = None
