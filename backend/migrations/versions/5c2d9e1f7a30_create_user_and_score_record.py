"""create user and score_record tables

Revision ID: 5c2d9e1f7a30
Revises:
Create Date: 2024-09-12 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2d9e1f7a30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('password_hash', sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('user') as batch_op:
        batch_op.create_index(batch_op.f('ix_user_email'), ['email'], unique=True)

    op.create_table(
        'score_record',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('duration_seconds', sa.Float(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('clicks_per_second', sa.Float(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('score_record') as batch_op:
        batch_op.create_index(batch_op.f('ix_score_record_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_score_record_timestamp'), ['timestamp'], unique=False)


def downgrade():
    with op.batch_alter_table('score_record') as batch_op:
        batch_op.drop_index(batch_op.f('ix_score_record_timestamp'))
        batch_op.drop_index(batch_op.f('ix_score_record_user_id'))
    op.drop_table('score_record')
    with op.batch_alter_table('user') as batch_op:
        batch_op.drop_index(batch_op.f('ix_user_email'))
    op.drop_table('user')
