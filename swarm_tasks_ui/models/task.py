from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskFieldsRequest(BaseModel):
    """
    Body of PUT /api/tasks/{id}.

    The board UI posts back the record it got from GET /api/tasks, so
    `filename` may come along; `estimatedHours` is what the UI calls
    `estimated_hours`. Unknown keys (like `id`) are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    priority: Optional[Union[str, int, float]] = None
    category: Optional[str] = None
    estimated_hours: Optional[Union[int, float, str]] = Field(default=None, alias="estimatedHours")
    completed_date: Optional[str] = None
    description: Optional[str] = None
    filename: Optional[str] = None

    @field_validator("filename")
    @classmethod
    def bare_markdown_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if "/" in v or "\\" in v or "\x00" in v or v in (".", "..") or not v.endswith(".md"):
            raise ValueError("filename must be a bare *.md file name")
        return v

    @field_validator("title", "category", "completed_date", "description", mode="before")
    @classmethod
    def scalar_to_str(cls, v: Any) -> Any:
        # Hand-edited frontmatter like `category: 2024` lists as a number.
        if isinstance(v, (bool, int, float)):
            return str(v)
        return v

    def to_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class CreateTaskRequest(TaskFieldsRequest):
    """Body of POST /api/tasks. A title is needed to build the id."""

    title: str

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be empty")
        return v


class MoveTaskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to_state: str = Field(alias="toState")
