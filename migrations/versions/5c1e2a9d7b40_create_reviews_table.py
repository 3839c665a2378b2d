"""create_reviews_table

Revision ID: 5c1e2a9d7b40
Revises:
Create Date: 2026-10-17 10:12:44.318207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1e2a9d7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


review_type = sa.Enum('user', 'server', name='review_type')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('target_id', sa.BigInteger(), nullable=False),
        sa.Column('reviewer_id', sa.BigInteger(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('kind', review_type, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='review_rating_range'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('target_id', 'reviewer_id', 'kind', name='uq_reviews_target_reviewer_kind'),
    )
    # Listing and aggregate queries filter on (target_id, kind)
    op.create_index('ix_reviews_target_kind', 'reviews', ['target_id', 'kind'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_reviews_target_kind', table_name='reviews')
    op.drop_table('reviews')
    review_type.drop(op.get_bind(), checkfirst=True)
