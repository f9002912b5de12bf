from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class InboundMessage(BaseModel):
    """One message as delivered by the chat gateway."""

    model_config = ConfigDict(populate_by_name=True)

    source_channel_id: str = Field(
        validation_alias=AliasChoices("sourceChannelId", "from", "source_channel_id")
    )
    is_group: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("isGroupChannel", "isGroup", "is_group")
    )
    body: str = Field(default="", validation_alias=AliasChoices("bodyText", "body"))

    @property
    def is_group_channel(self) -> bool:
        # Some gateway builds leave isGroup unset; group ids end with @g.us.
        if self.is_group is not None:
            return self.is_group
        return self.source_channel_id.endswith("@g.us")


class ChannelInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel_id: str = Field(validation_alias=AliasChoices("id", "channelId", "channel_id"))
    name: str = ""
    is_group: bool = Field(default=False, validation_alias=AliasChoices("isGroup", "is_group"))


class RawOfferCandidate(BaseModel):
    """One offer as claimed by the oracle, before validation and correction."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    extracted_name: str = Field(default="", alias="extractedName")
    standardized_name: Optional[str] = Field(default=None, alias="standardizedName")
    category: Optional[str] = None
    details: Dict[str, str] = Field(default_factory=dict)

    @field_validator("extracted_name", mode="before")
    @classmethod
    def _none_name_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("details", mode="before")
    @classmethod
    def _keep_text_details(cls, v: Any) -> Dict[str, str]:
        if not isinstance(v, dict):
            return {}
        return {
            str(lang).strip().lower(): text
            for lang, text in v.items()
            if isinstance(text, str)
        }


class StructuredOffer(BaseModel):
    model_config = ConfigDict(frozen=True)

    extracted_name: str
    standardized_name: str
    category: str
    texts: Dict[str, str]


class RoutingConfig(BaseModel):
    """Static routing: category -> language -> destination channel id."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source_channels: List[str] = Field(default_factory=list, alias="sourceChannels")
    routes: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    target_languages: List[str] = Field(default_factory=lambda: ["en"], alias="targetLanguages")
    broadcast_channel: Optional[str] = Field(default=None, alias="broadcastChannel")

    @field_validator("source_channels", mode="after")
    @classmethod
    def _strip_sources(cls, v: List[str]) -> List[str]:
        return [s.strip() for s in v if s and s.strip()]

    @field_validator("routes", mode="before")
    @classmethod
    def _normalize_routes(cls, v: Any) -> Dict[str, Dict[str, str]]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("routes must map categories to {language: channel id}")
        out: Dict[str, Dict[str, str]] = {}
        for category, by_lang in v.items():
            if not isinstance(by_lang, dict):
                raise ValueError(f"routes[{category!r}] must map language codes to channel ids")
            channels = {
                str(lang).strip().lower(): str(channel).strip()
                for lang, channel in by_lang.items()
                if channel and str(channel).strip()
            }
            out[str(category).strip().upper()] = channels
        return out

    @field_validator("target_languages", mode="after")
    @classmethod
    def _normalize_languages(cls, v: List[str]) -> List[str]:
        seen: List[str] = []
        for lang in v:
            code = lang.strip().lower()
            if code and code not in seen:
                seen.append(code)
        if not seen:
            raise ValueError("targetLanguages must name at least one language")
        return seen

    @field_validator("broadcast_channel", mode="after")
    @classmethod
    def _blank_broadcast_is_unset(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v and v.strip() else None

    def is_source(self, channel_id: str) -> bool:
        return channel_id in self.source_channels

    def has_route(self, category: str) -> bool:
        return bool(self.routes.get((category or "").upper()))

    def languages_for(self, category: str) -> List[str]:
        return list(self.routes.get((category or "").upper(), {}))

    def route_for(self, category: str, language: str) -> Optional[str]:
        return self.routes.get((category or "").upper(), {}).get(language)


class SendResult(BaseModel):
    """Outcome of one consolidated or broadcast send; category None means broadcast."""

    language: str
    status: Literal["sent", "skipped", "failed"]
    category: Optional[str] = None
    channel_id: Optional[str] = None
    detail: str = ""


class DispatchReport(BaseModel):
    results: List[SendResult] = Field(default_factory=list)
    dropped_categories: List[str] = Field(default_factory=list)

    @property
    def sent(self) -> List[SendResult]:
        return [r for r in self.results if r.status == "sent"]

    @property
    def failed(self) -> List[SendResult]:
        return [r for r in self.results if r.status == "failed"]

    @property
    def skipped(self) -> List[SendResult]:
        return [r for r in self.results if r.status == "skipped"]
