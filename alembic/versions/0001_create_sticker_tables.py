"""create sticker tables

Revision ID: 0001_create_sticker_tables
Revises:
Create Date: 2026-10-18T12:00:00.000000Z
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_create_sticker_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "guild_data",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("personal_allowed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("manager_role", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "user_data",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "sticker_pack",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("prefix", sa.String(length=48), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("creator", sa.BigInteger(), nullable=True),
        sa.Column("creation_date", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("prefix"),
    )

    op.create_table(
        "sticker",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("creator", sa.BigInteger(), nullable=True),
        sa.Column("creation_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("guild_id", sa.BigInteger(), sa.ForeignKey("guild_data.id", ondelete="CASCADE"), nullable=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("user_data.id", ondelete="CASCADE"), nullable=True),
        sa.Column("pack_id", sa.Integer(), sa.ForeignKey("sticker_pack.id", ondelete="CASCADE"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(CASE WHEN guild_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN user_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN pack_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_sticker_single_owner",
        ),
    )
    op.create_index("ix_sticker_guild_name", "sticker", ["guild_id", "name"], unique=True)
    op.create_index("ix_sticker_user_name", "sticker", ["user_id", "name"], unique=True)
    op.create_index("ix_sticker_pack_name", "sticker", ["pack_id", "name"], unique=True)

    op.create_table(
        "role",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("guild_id", sa.BigInteger(), sa.ForeignKey("guild_data.id", ondelete="CASCADE"), nullable=False),
        sa.Column("whitelisted", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_role_guild_id", "role", ["guild_id"])

    op.create_table(
        "guild_pack_rel",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("guild_id", sa.BigInteger(), sa.ForeignKey("guild_data.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pack_id", sa.Integer(), sa.ForeignKey("sticker_pack.id", ondelete="CASCADE"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_guild_pack_unique", "guild_pack_rel", ["guild_id", "pack_id"], unique=True)

    op.create_table(
        "user_pack_rel",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("user_data.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pack_id", sa.Integer(), sa.ForeignKey("sticker_pack.id", ondelete="CASCADE"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_pack_unique", "user_pack_rel", ["user_id", "pack_id"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_user_pack_unique", table_name="user_pack_rel")
    op.drop_table("user_pack_rel")
    op.drop_index("ix_guild_pack_unique", table_name="guild_pack_rel")
    op.drop_table("guild_pack_rel")
    op.drop_index("ix_role_guild_id", table_name="role")
    op.drop_table("role")
    op.drop_index("ix_sticker_pack_name", table_name="sticker")
    op.drop_index("ix_sticker_user_name", table_name="sticker")
    op.drop_index("ix_sticker_guild_name", table_name="sticker")
    op.drop_table("sticker")
    op.drop_table("sticker_pack")
    op.drop_table("user_data")
    op.drop_table("guild_data")
