"""Subset of the Bot Framework Activity schema the pay bot reads."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from finebot.services.payments.models import ConversationAddress, is_absolute_http_url


class ChannelAccount(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: Optional[str] = None


class ConversationAccount(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: Optional[str] = None


class Activity(BaseModel):
    """Inbound activity posted by a channel to `/api/messages`."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str
    id: Optional[str] = None
    channel_id: str = Field(alias="channelId", min_length=1)
    service_url: str = Field(alias="serviceUrl", min_length=1)
    from_: ChannelAccount = Field(alias="from")
    conversation: ConversationAccount
    recipient: Optional[ChannelAccount] = None
    text: Optional[str] = None

    @field_validator("service_url")
    @classmethod
    def _absolute_service_url(cls, value: str) -> str:
        if not is_absolute_http_url(value):
            raise ValueError("serviceUrl must be an absolute http(s) URL")
        return value

    def address(self) -> ConversationAddress:
        return ConversationAddress(
            channel_id=self.channel_id,
            user_id=self.from_.id,
            conversation_id=self.conversation.id,
            service_url=self.service_url,
        )
