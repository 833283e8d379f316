"""SQLAlchemy ORM models for the VPN directory.

Nested, schema-free parts of a document (server protocol configs,
dropdown values, feedback extras) live in JSONB columns; everything that
is filtered, sorted or constrained is a regular column.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    def to_dict(self) -> dict[str, Any]:
        """Column values as a JSON-ready dict (timestamps in ISO-8601)."""
        result: dict[str, Any] = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, datetime):
                value = value.isoformat()
            result[column.key] = value
        return result


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class CountryTable(TimestampMixin, Base):
    """Country, keyed by its upper-case ISO code."""

    __tablename__ = "countries"

    id: Mapped[str] = mapped_column(String(8), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    flag: Mapped[str | None] = mapped_column(Text, nullable=True)
    country_code: Mapped[str | None] = mapped_column(String(8), nullable=True)


class CityTable(TimestampMixin, Base):
    __tablename__ = "cities"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    country_id: Mapped[str] = mapped_column(
        ForeignKey("countries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    country: Mapped[CountryTable] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("country_id", "slug", name="uniq_city_country_slug"),
        UniqueConstraint("country_id", "state", "name", name="uniq_city_country_state_name"),
    )


class ServerTable(TimestampMixin, Base):
    """VPN server with per-protocol connection configs."""

    __tablename__ = "servers"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    categories: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    country_id: Mapped[str] = mapped_column(
        ForeignKey("countries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    city_id: Mapped[str] = mapped_column(
        ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_pro: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mode: Mapped[str] = mapped_column(String(10), nullable=False, default="test")
    ip: Mapped[str] = mapped_column(String(64), nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    os_type: Mapped[str] = mapped_column(String(10), nullable=False)
    openvpn_config: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    wireguard_config: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    xray_config: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    country: Mapped[CountryTable] = relationship(lazy="selectin")
    city: Mapped[CityTable] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("os_type", "ip", name="uniq_os_type_ip"),
        Index("idx_servers_filter", "os_type", "is_pro", "mode", "created_at"),
    )


class AdTable(TimestampMixin, Base):
    __tablename__ = "ads"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    ad_id: Mapped[str | None] = mapped_column(Text, unique=True, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    position: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    os_type: Mapped[str] = mapped_column(String(10), nullable=False)


class FaqTable(TimestampMixin, Base):
    __tablename__ = "faqs"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    question: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(300), unique=True, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)


class FeedbackTable(TimestampMixin, Base):
    __tablename__ = "feedback"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    network_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    requested_server: Mapped[str | None] = mapped_column(Text, nullable=True)
    server_id: Mapped[str | None] = mapped_column(
        ForeignKey("servers.id", ondelete="CASCADE"), nullable=True, index=True
    )
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    review: Mapped[str] = mapped_column(Text, nullable=False)
    additional_data: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    os_type: Mapped[str] = mapped_column(String(10), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_feedback_submitted_at", "submitted_at"),
        Index("idx_feedback_rating_submitted_at", "rating", "submitted_at"),
    )


class ConnectivityTable(TimestampMixin, Base):
    """A user session on a server; open while disconnected_at is NULL."""

    __tablename__ = "connectivity"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    server_id: Mapped[str] = mapped_column(
        ForeignKey("servers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    connected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    disconnected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        # At most one open session per (user, server)
        Index(
            "uniq_open_session",
            "user_id",
            "server_id",
            unique=True,
            postgresql_where=text("disconnected_at IS NULL"),
        ),
        Index("idx_connectivity_connected_at", "connected_at"),
    )


class DropdownTable(TimestampMixin, Base):
    __tablename__ = "dropdowns"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    # [{"name": ..., "value": ...}], values unique within a dropdown
    values: Mapped[list[dict[str, str]]] = mapped_column(JSONB, nullable=False, default=list)


class PageTable(TimestampMixin, Base):
    """Static content page (about, terms, ...) identified by its type."""

    __tablename__ = "pages"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    type: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
