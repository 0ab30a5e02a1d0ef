"""Pydantic models for the persisted role snapshot.

On disk the snapshot is::

    {
        "Admins": {"alice": {"Username": "alice", "ChatID": 1234}},
        "AuthorizedUsers": {"bob": true}
    }

Either top-level key may be missing or null; both mean "empty".
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AdminEntry(BaseModel):
    """A registered admin."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., alias="Username")
    chat_id: Optional[int] = Field(
        default=None,
        alias="ChatID",
        description="Private chat the admin registered from; forward target",
    )


class RoleSnapshot(BaseModel):
    """Full persisted state of the role store."""

    model_config = ConfigDict(populate_by_name=True)

    admins: Dict[str, AdminEntry] = Field(default_factory=dict, alias="Admins")
    authorized_users: Dict[str, bool] = Field(
        default_factory=dict, alias="AuthorizedUsers"
    )

    @field_validator("admins", "authorized_users", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return {} if value is None else value

    def to_json(self) -> str:
        """Serialize with the on-disk field names."""
        return self.model_dump_json(by_alias=True, indent=4)
