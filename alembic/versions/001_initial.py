"""Initial migration

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Links table
    op.create_table(
        'links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('brand', sa.String(length=128), nullable=True),
        sa.Column('price', sa.String(length=64), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('thumbnail', sa.Text(), nullable=True),
        sa.Column('embedding', postgresql.JSONB(none_as_null=True), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('url')
    )

    # Saved items table
    op.create_table(
        'saved_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('link_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['link_id'], ['links.id'], ),
        sa.UniqueConstraint('user_id', 'link_id', name='uq_saved_item_user_link')
    )

    # Recommendations table
    op.create_table(
        'recommendations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('brand', sa.String(length=128), nullable=False),
        sa.Column('price', sa.String(length=64), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('feedback', sa.String(length=32), nullable=True),
        sa.Column('is_saved', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Create indexes
    op.create_index('ix_saved_items_user_id', 'saved_items', ['user_id'])
    op.create_index('ix_recommendations_user_id', 'recommendations', ['user_id'])


def downgrade() -> None:
    # Drop indexes
    op.drop_index('ix_recommendations_user_id', table_name='recommendations')
    op.drop_index('ix_saved_items_user_id', table_name='saved_items')

    # Drop tables
    op.drop_table('recommendations')
    op.drop_table('saved_items')
    op.drop_table('links')
