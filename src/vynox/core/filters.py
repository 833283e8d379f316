"""Query filter models for list endpoints.

Each model doubles as the cache fingerprint input of its list query, so
unset fields must stay None (None entries are dropped from fingerprints).
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

OsType = Literal["android", "ios", "both"]
ServerMode = Literal["test", "live", "off"]
Protocol = Literal["openvpn", "wireguard", "xray"]


class AdFilter(BaseModel):
    os_type: OsType | None = None
    type: str | None = None
    position: str | None = None
    status: bool | None = None


class ServerFilter(BaseModel):
    os_type: OsType | None = None
    # "test" lists servers in every mode
    mode: ServerMode | None = None
    search: str | None = None
    protocol: Protocol | None = None


class CityFilter(BaseModel):
    country: str | None = None
    state: str | None = None


class FeedbackFilter(BaseModel):
    server_id: str | None = None
    reason: str | None = None
    os_type: OsType | None = None
    rating: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class DropdownFilter(BaseModel):
    name: str | None = None


class PageFilter(BaseModel):
    type: str | None = None
    title: str | None = None
    q: str | None = None
