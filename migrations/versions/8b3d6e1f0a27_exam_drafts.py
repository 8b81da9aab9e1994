from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '8b3d6e1f0a27'
down_revision = '5c0e2f7a91b4'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'exam_draft',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('study_group.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('questions', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('user_id', 'group_id', name='uq_exam_draft'),
    )

def downgrade():
    op.drop_table('exam_draft')
