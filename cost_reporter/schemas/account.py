"""Account and credential schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AccountIdentity(BaseModel):
    """AWS account identity with an optional display alias."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="12-digit AWS account id")
    name: str = Field(default="", description="Display name (defaults to the id)")

    @model_validator(mode="before")
    @classmethod
    def default_name(cls, data: Any) -> Any:
        """Use the account id as display name when no alias is configured."""
        if isinstance(data, dict) and not data.get("name"):
            return {**data, "name": data.get("id", "")}
        return data


class AwsCredentials(BaseModel):
    """Short-lived credentials obtained through role assumption."""

    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: str = Field(repr=False)
    session_token: str | None = Field(default=None, repr=False)

    def session_kwargs(self) -> dict[str, str]:
        """Keyword arguments for ``aioboto3.Session``."""
        kwargs = {
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
        }
        if self.session_token:
            kwargs["aws_session_token"] = self.session_token
        return kwargs
