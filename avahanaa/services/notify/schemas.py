"""Request/response schemas for the notify endpoint."""

from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class NotifyRequest(BaseModel):
    """Normalized notify payload.

    Required-field checks happen in the orchestrator so that missing fields
    are reported together as one `invalid-argument` failure.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code_id: str = Field(default="", validation_alias=AliasChoices("codeId", "qrId", "code_id"))
    owner_id: str = Field(default="", validation_alias=AliasChoices("ownerId", "userId", "owner_id"))
    destination_token: str = Field(
        default="",
        validation_alias=AliasChoices("destinationToken", "fcmToken", "destination_token"),
    )
    vehicle_id: str = Field(default="", validation_alias=AliasChoices("vehicleId", "vehicle_id"))
    title: str = ""
    body: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("code_id", "owner_id", "destination_token", "vehicle_id", "title", "body", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("metadata", mode="before")
    @classmethod
    def _clean_metadata(cls, value: Any) -> dict[str, str]:
        # Non-string and blank values are dropped rather than rejected.
        if not isinstance(value, dict):
            return {}
        return {
            str(key): item.strip()
            for key, item in value.items()
            if isinstance(item, str) and item.strip()
        }

    def missing_fields(self) -> list[str]:
        required = {"codeId": self.code_id, "title": self.title, "body": self.body}
        return [name for name, value in required.items() if not value]


class NotifyResponse(BaseModel):
    """Success contract returned to the scanning client."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    owner_id: str = Field(serialization_alias="ownerId")
    vehicle_id: str | None = Field(default=None, serialization_alias="vehicleId")


@dataclass(frozen=True)
class ConnectionContext:
    """Transport metadata of the caller, extracted at the HTTP boundary."""

    forwarded_for: str | None = None
    peer_address: str | None = None
    user_agent: str | None = None
