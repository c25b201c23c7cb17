"""Create players, matches, match_players and elo_history tables

Revision ID: 5a1f0c9e7b21
Revises:
Create Date: 2026-10-18 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "5a1f0c9e7b21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=True),
        sa.Column("gender", sa.String(length=20), nullable=True),
        sa.Column("singles_elo", sa.Integer(), nullable=False, server_default=sa.text("1000")),
        sa.Column("doubles_elo", sa.Integer(), nullable=False, server_default=sa.text("1000")),
        sa.Column("overall_elo", sa.Integer(), nullable=True),
        sa.Column("singles_matches_played", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("doubles_matches_played", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_players_singles_elo", "players", ["singles_elo"], unique=False)
    op.create_index("idx_players_doubles_elo", "players", ["doubles_elo"], unique=False)
    op.create_index("idx_players_overall_elo", "players", ["overall_elo"], unique=False)

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("match_type", sa.String(length=10), nullable=False),
        sa.Column("score", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("submitted_by", sa.String(length=64), nullable=False),
        sa.Column(
            "needs_confirmation_from_list",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("played_at", sa.DateTime(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by", sa.String(length=64), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("elo_change_side_a", sa.Integer(), nullable=True),
        sa.Column("elo_change_side_b", sa.Integer(), nullable=True),
        sa.Column("video_link", sa.String(length=500), nullable=True),
        sa.Column("video_added_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("match_type IN ('singles', 'doubles')", name="ck_matches_match_type"),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="ck_matches_status"),
    )
    op.create_index("idx_matches_status", "matches", ["status"], unique=False)
    op.create_index("idx_matches_played_at", "matches", ["played_at"], unique=False)

    op.create_table(
        "match_players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(length=64), nullable=False),
        sa.Column("team", sa.String(length=1), nullable=False),
        sa.Column("is_winner", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("match_id", "player_id", name="uq_match_players_match_player"),
        sa.CheckConstraint("team IN ('A', 'B')", name="ck_match_players_team"),
    )
    op.create_index("ix_match_players_player_id", "match_players", ["player_id"], unique=False)

    op.create_table(
        "elo_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(length=64), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("discipline", sa.String(length=10), nullable=False),
        sa.Column("old_elo", sa.Integer(), nullable=False),
        sa.Column("new_elo", sa.Integer(), nullable=False),
        sa.Column("old_overall_elo", sa.Integer(), nullable=True),
        sa.Column("new_overall_elo", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "match_id", name="uq_elo_history_player_match"),
    )
    op.create_index(
        "idx_elo_history_player_created",
        "elo_history",
        ["player_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_elo_history_player_created", table_name="elo_history")
    op.drop_table("elo_history")
    op.drop_index("ix_match_players_player_id", table_name="match_players")
    op.drop_table("match_players")
    op.drop_index("idx_matches_played_at", table_name="matches")
    op.drop_index("idx_matches_status", table_name="matches")
    op.drop_table("matches")
    op.drop_index("idx_players_overall_elo", table_name="players")
    op.drop_index("idx_players_doubles_elo", table_name="players")
    op.drop_index("idx_players_singles_elo", table_name="players")
    op.drop_table("players")
