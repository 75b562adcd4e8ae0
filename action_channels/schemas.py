from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator


def _fee_from_json(value: Any) -> Any:
    # 0.1 must read back as Decimal("0.1"), not the binary expansion
    if isinstance(value, float):
        return Decimal(repr(value))
    return value


class ChannelRecord(BaseModel):
    """A registered channel. Immutable once created."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    route: str
    channel_name: str = Field(..., alias="channelName")
    description: str
    fee: Decimal
    cover_image: str = Field(..., alias="coverImage")
    owner_address: str = Field(
        ..., alias="ownerAddress",
        validation_alias=AliasChoices("ownerAddress", "publicKey", "owner_address"),
    )
    external_link: str = Field(
        "", alias="externalLink",
        validation_alias=AliasChoices("externalLink", "link", "external_link"),
    )
    contact_link: str = Field(
        "", alias="contactLink",
        validation_alias=AliasChoices("contactLink", "telegramLink", "contact_link"),
    )
    created_at: datetime = Field(..., alias="createdAt")

    @field_validator("fee", mode="before")
    @classmethod
    def _coerce_fee(cls, value: Any) -> Any:
        return _fee_from_json(value)

    @field_serializer("fee")
    def _serialize_fee(self, fee: Decimal) -> float:
        return float(fee)

    def summary(self) -> "ChannelSummary":
        return ChannelSummary(
            channelName=self.channel_name,
            description=self.description,
            fee=self.fee,
            route=self.route,
            createdAt=self.created_at,
        )


class ChannelSummary(BaseModel):
    """Public listing view of a channel; carries no owner address."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    channel_name: str = Field(..., alias="channelName")
    description: str
    fee: Decimal
    route: str
    created_at: datetime = Field(..., alias="createdAt")

    @field_serializer("fee")
    def _serialize_fee(self, fee: Decimal) -> float:
        return float(fee)


class RegisterRequest(BaseModel):
    # Loosely typed so the registry decides which check fails first
    model_config = ConfigDict(populate_by_name=True)

    channel_name: Optional[Any] = Field(None, alias="channelName")
    description: Optional[Any] = None
    fee: Optional[Any] = None
    public_key: Optional[Any] = Field(None, alias="publicKey")
    cover_image: Optional[Any] = Field(None, alias="coverImage")
    link: Optional[Any] = None
    contact_link: Optional[Any] = Field(
        None, alias="contactLink",
        validation_alias=AliasChoices("contactLink", "telegramLink", "contact_link"),
    )


class RegisterResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Channel created successfully"
    route: str
    channel_name: str = Field(..., alias="channelName")


class ActionMetadata(BaseModel):
    type: str = "action"
    icon: str
    label: str
    title: str
    description: str


class ActionPostRequest(BaseModel):
    account: Optional[Any] = None


class ActionPostResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = "transaction"
    transaction: str
    message: str
    channel_link: str = Field(..., alias="channelLink")
    contact_link: str = Field(..., alias="contactLink")


class ErrorDetails(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    error: ErrorDetails
