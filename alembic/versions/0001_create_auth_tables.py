"""create users and login_history tables"""
from alembic import op
import sqlalchemy as sa

revision = "0001_create_auth_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default="user"),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_code", sa.String(6), nullable=True),
        sa.Column("code_expiry", sa.DateTime(), nullable=True),
        sa.Column("reset_password_code", sa.String(6), nullable=True),
        sa.Column("reset_password_expiry", sa.DateTime(), nullable=True),
        sa.Column("totp_secret", sa.String(64), nullable=True),
        sa.Column("totp_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "(verification_code IS NULL) = (code_expiry IS NULL)",
            name="ck_users_verification_code_pair",
        ),
        sa.CheckConstraint(
            "(reset_password_code IS NULL) = (reset_password_expiry IS NULL)",
            name="ck_users_reset_code_pair",
        ),
        sa.CheckConstraint(
            "NOT totp_enabled OR totp_secret IS NOT NULL",
            name="ck_users_totp_enabled_has_secret",
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "login_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_login_history_user_id_users"),
            nullable=False,
        ),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("device", sa.String(16), nullable=False, server_default="unknown"),
        sa.Column("successful", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("login_time", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_login_history_user_id", "login_history", ["user_id"])
    op.create_index("ix_login_history_user_time", "login_history", ["user_id", "login_time"])


def downgrade() -> None:
    op.drop_index("ix_login_history_user_time", table_name="login_history")
    op.drop_index("ix_login_history_user_id", table_name="login_history")
    op.drop_table("login_history")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
