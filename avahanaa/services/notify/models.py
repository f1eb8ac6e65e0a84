"""Notify service database models.

Code registrations, owner profiles and vehicles are written by the external
registration workflow; this service reads them, clears stale owner tokens,
owns the rate-limit counters and appends notification audit rows.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from avahanaa.common.db import Base


class QrCode(Base):
    """Scannable code linked to an owner and optionally a vehicle."""

    __tablename__ = "qr_codes"

    code_id: Mapped[str] = mapped_column(String, primary_key=True)
    owner_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    vehicle_id: Mapped[str | None] = mapped_column(String, nullable=True)
    # Registration-time metadata, may carry `ownerId` / `vehicleId` for older codes.
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata", JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    # NULL means active; only an explicit false deactivates a code.
    active: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    destination_token: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Owner(Base):
    """Owner profile holding the current push destination token."""

    __tablename__ = "owners"

    owner_id: Mapped[str] = mapped_column(String, primary_key=True)
    destination_token: Mapped[str | None] = mapped_column(String, nullable=True)
    notifications_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Vehicle(Base):
    """Per-owner vehicle sub-record with optional notification restrictions."""

    __tablename__ = "vehicles"

    owner_id: Mapped[str] = mapped_column(ForeignKey("owners.owner_id"), primary_key=True)
    vehicle_id: Mapped[str] = mapped_column(String, primary_key=True)
    active: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    notifications_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)


class RateLimitCounter(Base):
    """Sliding-window attempt counter for one (scope, identity) key."""

    __tablename__ = "rate_limit_counters"

    scope: Mapped[str] = mapped_column(String, primary_key=True)
    identity: Mapped[str] = mapped_column(String, primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    window_start_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Notification(Base):
    """Append-only audit entry for one dispatched push."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    code_id: Mapped[str] = mapped_column(String, index=True)
    owner_id: Mapped[str] = mapped_column(String, index=True)
    vehicle_id: Mapped[str | None] = mapped_column(String, nullable=True)
    reason: Mapped[str] = mapped_column(String)
    message: Mapped[str] = mapped_column(String)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    status: Mapped[str] = mapped_column(String, default="sent")
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
