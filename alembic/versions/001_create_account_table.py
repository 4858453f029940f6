"""Create account table

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "account",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=256), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=True),
        sa.Column("first_name", sa.String(length=128), nullable=True),
        sa.Column("last_name", sa.String(length=128), nullable=True),
        sa.Column("password_hash", sa.String(length=256), nullable=False),
        sa.Column("role", sa.Enum("USER", "ADMIN", name="role"), nullable=False, server_default="USER"),
        sa.Column("avatar", sa.String(length=1024), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_token", sa.String(length=256), nullable=True),
        sa.Column("verification_token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("verified_token", sa.String(length=256), nullable=True),
        sa.Column("password_reset_token", sa.String(length=256), nullable=True),
        sa.Column("password_reset_expires_at", sa.DateTime(), nullable=True),
        sa.Column("hashed_refresh_token", sa.String(length=256), nullable=True),
        sa.Column("terms_accepted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("terms_accepted_at", sa.DateTime(), nullable=True),
        sa.Column("newsletter_opt_in", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_account_email"), "account", ["email"], unique=True)
    op.create_index(op.f("ix_account_username"), "account", ["username"], unique=True)
    op.create_index(op.f("ix_account_verification_token"), "account", ["verification_token"], unique=False)
    op.create_index(op.f("ix_account_verified_token"), "account", ["verified_token"], unique=False)
    op.create_index(op.f("ix_account_password_reset_token"), "account", ["password_reset_token"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_account_password_reset_token"), table_name="account")
    op.drop_index(op.f("ix_account_verified_token"), table_name="account")
    op.drop_index(op.f("ix_account_verification_token"), table_name="account")
    op.drop_index(op.f("ix_account_username"), table_name="account")
    op.drop_index(op.f("ix_account_email"), table_name="account")
    op.drop_table("account")
    sa.Enum(name="role").drop(op.get_bind(), checkfirst=True)
