"""Write payloads accepted by the entity services.

Update models leave every field optional; services apply only the fields
that were explicitly set (``model_dump(exclude_unset=True)``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from vynox.core.filters import OsType, ServerMode

AdType = Literal["banner", "interstitial", "reward"]
AdPosition = Literal["home", "splash", "server", "report"]
Category = Literal["gaming", "streaming"]


class _Payload(BaseModel):
    model_config = {"extra": "forbid"}

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# -----------------------------------------------------------------------------
# Ads
# -----------------------------------------------------------------------------


class AdCreate(_Payload):
    type: AdType
    position: AdPosition
    status: bool = True
    ad_id: str | None = None
    os_type: OsType


class AdUpdate(_Payload):
    type: AdType | None = None
    position: AdPosition | None = None
    status: bool | None = None
    ad_id: str | None = None
    os_type: OsType | None = None


# -----------------------------------------------------------------------------
# Servers
# -----------------------------------------------------------------------------


class OpenVpnConfig(_Payload):
    username: str | None = None
    password: str | None = None
    config: str | None = None


class WireguardConfig(_Payload):
    url: str | None = None
    api_token: str | None = None


class XrayConfig(_Payload):
    shadowsocks: str | None = None
    vless: str | None = None
    vmess: str | None = None
    torjan: str | None = None


class ServerCreate(_Payload):
    name: str
    categories: list[Category] = Field(default_factory=list)
    country_id: str
    city_id: str
    is_pro: bool = False
    mode: ServerMode = "test"
    ip: str
    latitude: float | None = None
    longitude: float | None = None
    os_type: OsType
    openvpn_config: OpenVpnConfig | None = None
    wireguard_config: WireguardConfig | None = None
    xray_config: XrayConfig | None = None

    @field_validator("country_id")
    @classmethod
    def _upper_country(cls, value: str) -> str:
        return value.upper()


class ServerUpdate(_Payload):
    name: str | None = None
    categories: list[Category] | None = None
    country_id: str | None = None
    city_id: str | None = None
    is_pro: bool | None = None
    mode: ServerMode | None = None
    ip: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    os_type: OsType | None = None

    @field_validator("country_id")
    @classmethod
    def _upper_country(cls, value: str | None) -> str | None:
        return value.upper() if value else value


# -----------------------------------------------------------------------------
# Countries and cities
# -----------------------------------------------------------------------------


class CountryCreate(_Payload):
    name: str
    country_code: str
    slug: str | None = None
    flag: str | None = None


class CountryUpdate(_Payload):
    name: str | None = None
    slug: str | None = None
    flag: str | None = None


class CityCreate(_Payload):
    name: str
    slug: str | None = None
    state: str
    country: str
    latitude: float
    longitude: float


class CityUpdate(_Payload):
    name: str | None = None
    slug: str | None = None
    state: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None


# -----------------------------------------------------------------------------
# Content
# -----------------------------------------------------------------------------


class FaqCreate(_Payload):
    question: str
    answer: str

    @field_validator("question", "answer")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class FaqUpdate(_Payload):
    question: str | None = None
    answer: str | None = None

    @field_validator("question", "answer")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        return value.strip() if value is not None else None


class FeedbackCreate(_Payload):
    reason: str
    network_type: Literal["wifi", "mobile"] | None = None
    requested_server: str | None = None
    server_id: str | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    review: str
    additional_data: dict[str, Any] | None = None
    os_type: OsType
    submitted_at: datetime | None = None


class DropdownValue(_Payload):
    name: str
    value: str


class DropdownCreate(_Payload):
    name: str
    values: list[DropdownValue] = Field(default_factory=list)


class DropdownUpdate(_Payload):
    name: str | None = None
    values: list[DropdownValue] | None = None


class DropdownValuePatch(_Payload):
    new_name: str | None = None
    new_value: str | None = None


class PageCreate(_Payload):
    type: str
    title: str
    description: str

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        return value.strip().lower()


class PageUpdate(_Payload):
    type: str | None = None
    title: str | None = None
    description: str | None = None

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, value: str | None) -> str | None:
        return value.strip().lower() if value is not None else None
