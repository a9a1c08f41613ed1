"""Initial schema — all 8 Pawmatch tables and the mutual-like trigger.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return cols


# A reciprocated like inserts one match row per pet pair.  The pair is stored
# with the smaller id in pet1_id so both directions hit the same unique key.
CREATE_MATCH_FUNCTION = """
CREATE OR REPLACE FUNCTION create_match_on_mutual_like()
RETURNS TRIGGER AS $$
BEGIN
    IF NEW.liked AND EXISTS (
        SELECT 1 FROM swipes
        WHERE swiper_pet_id = NEW.swiped_pet_id
          AND swiped_pet_id = NEW.swiper_pet_id
          AND liked
    ) THEN
        INSERT INTO matches (id, pet1_id, pet2_id, created_at)
        VALUES (
            gen_random_uuid(),
            LEAST(NEW.swiper_pet_id, NEW.swiped_pet_id),
            GREATEST(NEW.swiper_pet_id, NEW.swiped_pet_id),
            now()
        )
        ON CONFLICT (pet1_id, pet2_id) DO NOTHING;
    END IF;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""

CREATE_MATCH_TRIGGER = """
CREATE TRIGGER trg_create_match_on_mutual_like
AFTER INSERT ON swipes
FOR EACH ROW EXECUTE FUNCTION create_match_on_mutual_like();
"""


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String, unique=True, index=True, nullable=False),
        sa.Column("full_name", sa.String, nullable=False),
        sa.Column("avatar_url", sa.String, nullable=True),
        sa.Column(
            "user_type",
            sa.String,
            server_default="owner",
            nullable=False,
            comment="owner / sitter",
        ),
        sa.Column("is_admin", sa.Boolean, server_default="false", nullable=False),
        *_timestamps(),
    )

    # ── 2. pets ─────────────────────────────────────────────────────
    op.create_table(
        "pets",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "owner_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("species", sa.String, nullable=False, comment="dog / cat / ... (pet_type)"),
        sa.Column("breed", sa.String(50), nullable=True),
        sa.Column("birth_date", sa.Date, nullable=True),
        sa.Column("age", sa.Integer, nullable=True),
        sa.Column("gender", sa.String, nullable=True),
        sa.Column("avatar_url", sa.String, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
    )

    # ── 3. swipes ───────────────────────────────────────────────────
    op.create_table(
        "swipes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "swiper_pet_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "swiped_pet_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("liked", sa.Boolean, nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint("swiper_pet_id != swiped_pet_id", name="ck_no_self_swipe"),
    )
    op.create_index(
        "ix_swipes_swiper_swiped",
        "swipes",
        ["swiper_pet_id", "swiped_pet_id"],
    )

    # ── 4. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "pet1_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pets.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "pet2_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pets.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        *_timestamps(updated=False),
        sa.UniqueConstraint("pet1_id", "pet2_id", name="uq_match_pair"),
    )

    # ── 5. messages ─────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "match_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("matches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "sender_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text, nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index(
        "ix_messages_match_created",
        "messages",
        ["match_id", "created_at"],
    )

    # ── 6. sitters ──────────────────────────────────────────────────
    op.create_table(
        "sitters",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("service_area", sa.String(100), nullable=False),
        sa.Column("introduction", sa.Text, nullable=False),
        sa.Column("price_per_hour", sa.Numeric(10, 2), nullable=False),
        sa.Column("qualifications", sa.Text, nullable=True),
        sa.Column("experience", sa.Text, nullable=True),
        sa.Column("availability", sa.Text, nullable=True),
        sa.Column("emergency_contact", sa.String, nullable=True),
        sa.Column("has_insurance", sa.Boolean, server_default="false", nullable=False),
        sa.Column("has_first_aid", sa.Boolean, server_default="false", nullable=False),
        sa.Column("is_approved", sa.Boolean, server_default="false", nullable=False),
        sa.Column("is_certified", sa.Boolean, server_default="false", nullable=False),
        *_timestamps(updated=False),
    )

    # ── 7. bookings ─────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "sitter_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sitters.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "pet_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pets.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_hours", sa.Float, nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.String,
            server_default="pending",
            nullable=False,
            comment="pending / confirmed / in_progress / completed / cancelled",
        ),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint("end_time > start_time", name="ck_booking_time_order"),
    )

    # ── 8. reviews ──────────────────────────────────────────────────
    op.create_table(
        "reviews",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "booking_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "sitter_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sitters.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("comment", sa.Text, server_default="", nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("booking_id", name="uq_review_booking"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating"),
    )

    # ── Mutual-like trigger ─────────────────────────────────────────
    op.execute(CREATE_MATCH_FUNCTION)
    op.execute(CREATE_MATCH_TRIGGER)


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.execute("DROP TRIGGER IF EXISTS trg_create_match_on_mutual_like ON swipes")
    op.execute("DROP FUNCTION IF EXISTS create_match_on_mutual_like()")

    op.drop_table("reviews")
    op.drop_table("bookings")
    op.drop_table("sitters")
    op.drop_index("ix_messages_match_created", table_name="messages")
    op.drop_table("messages")
    op.drop_table("matches")
    op.drop_index("ix_swipes_swiper_swiped", table_name="swipes")
    op.drop_table("swipes")
    op.drop_table("pets")
    op.drop_table("users")
