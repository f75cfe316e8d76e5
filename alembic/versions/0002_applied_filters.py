"""applied_filters

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Stores the filter strings last pushed for each applied pair so a rule edit
is detected and re-pushed.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("applied_restrictions") as batch:
        batch.add_column(sa.Column("movie_filter", sa.Text, nullable=False, server_default=""))
        batch.add_column(sa.Column("tv_filter", sa.Text, nullable=False, server_default=""))


def downgrade() -> None:
    with op.batch_alter_table("applied_restrictions") as batch:
        batch.drop_column("tv_filter")
        batch.drop_column("movie_filter")
