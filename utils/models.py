from __future__ import annotations

"""SQLAlchemy models for the sticker registry.

Tables mirror alembic/versions/0001_create_sticker_tables.py. Install order for
packs is the autoincrement id of the relation row.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class GuildData(Base):
    __tablename__ = "guild_data"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    personal_allowed: Mapped[bool] = mapped_column(Boolean, default=True)
    manager_role: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class UserData(Base):
    __tablename__ = "user_data"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)


class StickerPack(Base):
    __tablename__ = "sticker_pack"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prefix: Mapped[str] = mapped_column(String(48), unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    creator: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    creation_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now_utc)


class Sticker(Base):
    __tablename__ = "sticker"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(32))
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    creator: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    creation_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now_utc)

    # Exactly one owner scope is set.
    guild_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("guild_data.id", ondelete="CASCADE"), nullable=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("user_data.id", ondelete="CASCADE"), nullable=True
    )
    pack_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("sticker_pack.id", ondelete="CASCADE"), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN guild_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN user_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN pack_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_sticker_single_owner",
        ),
        Index("ix_sticker_guild_name", "guild_id", "name", unique=True),
        Index("ix_sticker_user_name", "user_id", "name", unique=True),
        Index("ix_sticker_pack_name", "pack_id", "name", unique=True),
    )


class Role(Base):
    __tablename__ = "role"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    guild_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("guild_data.id", ondelete="CASCADE"), index=True
    )
    whitelisted: Mapped[bool] = mapped_column(Boolean)


class GuildPackRel(Base):
    __tablename__ = "guild_pack_rel"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("guild_data.id", ondelete="CASCADE")
    )
    pack_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sticker_pack.id", ondelete="CASCADE")
    )

    __table_args__ = (Index("ix_guild_pack_unique", "guild_id", "pack_id", unique=True),)


class UserPackRel(Base):
    __tablename__ = "user_pack_rel"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("user_data.id", ondelete="CASCADE")
    )
    pack_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sticker_pack.id", ondelete="CASCADE")
    )

    __table_args__ = (Index("ix_user_pack_unique", "user_id", "pack_id", unique=True),)
