from __future__ import annotations
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("challenge_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "achievements",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("award", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("user_id", "award", name="uq_achievement_once_per_award"),
    )
    op.create_index("ix_achievements_user_id", "achievements", ["user_id"])

    op.create_table(
        "challenges",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("host_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("photo_description", sa.Text(), nullable=True),
        sa.Column("challenge_rule", sa.Text(), nullable=True),
        sa.Column("check_frequency", sa.String(length=16), nullable=False),
        sa.Column("check_times_per_round", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("category", sa.String(length=16), nullable=False, server_default="etc"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("deposit_point", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("introduction", sa.Text(), nullable=True),
        sa.Column("total_star_rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("star_rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_count_limit", sa.Integer(), nullable=False),
        sa.Column("failed_point", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("round", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ready"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("end_date > start_date", name="ck_challenge_date_order"),
        sa.CheckConstraint("user_count <= user_count_limit", name="ck_challenge_user_limit"),
        sa.CheckConstraint("failed_point >= 0", name="ck_challenge_failed_point"),
    )
    op.create_index("ix_challenges_host_id", "challenges", ["host_id"])
    op.create_index("ix_challenges_status", "challenges", ["status"])

    op.create_table(
        "example_photos",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("challenge_id", sa.Uuid(), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("photo_url", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_example_photos_challenge_id", "example_photos", ["challenge_id"])

    op.create_table(
        "tags",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
    )
    op.create_index("ix_tags_name", "tags", ["name"], unique=True)

    op.create_table(
        "challenge_tags",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("challenge_id", sa.Uuid(), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tag_id", sa.Uuid(), sa.ForeignKey("tags.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("challenge_id", "tag_id", name="uq_challenge_tag"),
    )
    op.create_index("ix_challenge_tags_challenge_id", "challenge_tags", ["challenge_id"])
    op.create_index("ix_challenge_tags_tag_id", "challenge_tags", ["tag_id"])

    op.create_table(
        "user_challenges",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("challenge_id", sa.Uuid(), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="in_progress"),
        sa.Column("max_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("joined_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("user_id", "challenge_id", name="uq_user_challenge_once"),
    )
    op.create_index("ix_user_challenges_user_id", "user_challenges", ["user_id"])
    op.create_index("ix_user_challenges_challenge_id", "user_challenges", ["challenge_id"])

    op.create_table(
        "bookmarks",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("challenge_id", sa.Uuid(), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("user_id", "challenge_id", name="uq_bookmark_once"),
    )
    op.create_index("ix_bookmarks_user_id", "bookmarks", ["user_id"])
    op.create_index("ix_bookmarks_challenge_id", "bookmarks", ["challenge_id"])

    op.create_table(
        "challenge_photos",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("challenge_id", sa.Uuid(), sa.ForeignKey("challenges.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("photo_url", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_challenge_photos_challenge_id", "challenge_photos", ["challenge_id"])
    op.create_index("ix_challenge_photos_user_id", "challenge_photos", ["user_id"])

    op.create_table(
        "photo_checks",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("challenge_id", sa.Uuid(), sa.ForeignKey("challenges.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_challenge_id", sa.Uuid(), sa.ForeignKey("user_challenges.id", ondelete="SET NULL"), nullable=True),
        sa.Column("challenge_photo_id", sa.Uuid(), sa.ForeignKey("challenge_photos.id"), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="waiting"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('waiting', 'pass', 'fail')", name="ck_photo_check_status"),
    )
    op.create_index("ix_photo_checks_challenge_id", "photo_checks", ["challenge_id"])
    op.create_index("ix_photo_checks_user_challenge_id", "photo_checks", ["user_challenge_id"])
    op.create_index("ix_photo_checks_round_lookup", "photo_checks", ["user_challenge_id", "round"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("challenge_id", sa.Uuid(), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("star_rating", sa.Float(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "challenge_id", name="uq_review_once_per_user"),
    )
    op.create_index("ix_reviews_challenge_id", "reviews", ["challenge_id"])
    op.create_index("ix_reviews_user_id", "reviews", ["user_id"])

def downgrade() -> None:
    for table in (
        "reviews", "photo_checks", "challenge_photos", "bookmarks", "user_challenges",
        "challenge_tags", "tags", "example_photos", "challenges", "achievements", "users",
    ):
        op.drop_table(table)
