"""Add bin day and chore digest switches to notification_preferences

Revision ID: 002
Revises: 001
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SWITCHES = ("bins_enabled", "bin_day_reminder", "chores_enabled", "chore_daily_digest")


def upgrade() -> None:
    for name in SWITCHES:
        op.add_column("notification_preferences", sa.Column(name, sa.Boolean(), nullable=True))


def downgrade() -> None:
    for name in reversed(SWITCHES):
        op.drop_column("notification_preferences", name)
