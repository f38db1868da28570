"""booking core

Revision ID: 3c1f0a7d2b94
Revises: 
Create Date: 2024-01-08 09:12:44.518230

"""
from pathlib import Path
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3c1f0a7d2b94'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    project_root = Path(__file__).resolve().parents[2]
    sql_dir = project_root / "sql"

    for filename in ("001_extensions.sql", "010_schema.sql", "030_commit_booking.sql"):
        op.execute((sql_dir / filename).read_text())


def downgrade() -> None:
    op.execute(
        """
        DROP FUNCTION IF EXISTS commit_booking(
          bigint, text, bigint, timestamptz, timestamptz, numeric
        );
        """
    )
    op.drop_table("booking", schema="public")
    op.drop_table("guest", schema="public")
    op.drop_table("workspace", schema="public")
    op.execute("DROP EXTENSION IF EXISTS btree_gist;")
