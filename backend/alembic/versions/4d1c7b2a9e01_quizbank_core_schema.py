"""quizbank core schema: taxonomy, questions, user state, quiz creation jobs

Revision ID: 4d1c7b2a9e01
Revises:
Create Date: 2026-10-18 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4d1c7b2a9e01'
down_revision = None
branch_labels = None
depends_on = None


def _taxonomy_columns():
    return [
        sa.Column('theme_id', sa.Integer(), nullable=True),
        sa.Column('subtheme_id', sa.Integer(), nullable=True),
        sa.Column('group_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['theme_id'], ['themes.id'], ),
        sa.ForeignKeyConstraint(['subtheme_id'], ['subthemes.id'], ),
        sa.ForeignKeyConstraint(['group_id'], ['question_groups.id'], ),
    ]


def upgrade() -> None:
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tenants_id'), 'tenants', ['id'], unique=False)
    op.create_index(op.f('ix_tenants_slug'), 'tenants', ['slug'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=128), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=32), server_default='user', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_id')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'themes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('prefix', sa.String(length=32), nullable=True),
        sa.Column('display_order', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_themes_tenant_id'), 'themes', ['tenant_id'], unique=False)

    op.create_table(
        'subthemes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('theme_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('prefix', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.ForeignKeyConstraint(['theme_id'], ['themes.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_subthemes_tenant_id'), 'subthemes', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_subthemes_theme_id'), 'subthemes', ['theme_id'], unique=False)

    op.create_table(
        'question_groups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('subtheme_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('prefix', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.ForeignKeyConstraint(['subtheme_id'], ['subthemes.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_question_groups_tenant_id'), 'question_groups', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_question_groups_subtheme_id'), 'question_groups', ['subtheme_id'], unique=False)

    op.create_table(
        'questions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('theme_id', sa.Integer(), nullable=False),
        sa.Column('subtheme_id', sa.Integer(), nullable=True),
        sa.Column('group_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('normalized_title', sa.String(length=500), nullable=False),
        sa.Column('question_code', sa.String(length=64), nullable=True),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('explanation_text', sa.Text(), nullable=True),
        sa.Column('alternatives', sa.JSON(), nullable=False),
        sa.Column('correct_alternative_index', sa.Integer(), nullable=False),
        sa.Column('author_id', sa.Integer(), nullable=True),
        sa.Column('is_public', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.ForeignKeyConstraint(['theme_id'], ['themes.id'], ),
        sa.ForeignKeyConstraint(['subtheme_id'], ['subthemes.id'], ),
        sa.ForeignKeyConstraint(['group_id'], ['question_groups.id'], ),
        sa.ForeignKeyConstraint(['author_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_questions_tenant_id'), 'questions', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_questions_normalized_title'), 'questions', ['normalized_title'], unique=False)
    op.create_index(op.f('ix_questions_question_code'), 'questions', ['question_code'], unique=False)
    op.create_index('ix_questions_tenant_theme', 'questions', ['tenant_id', 'theme_id'], unique=False)
    op.create_index('ix_questions_tenant_subtheme', 'questions', ['tenant_id', 'subtheme_id'], unique=False)
    op.create_index('ix_questions_tenant_group', 'questions', ['tenant_id', 'group_id'], unique=False)

    op.create_table(
        'user_question_stats',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('has_answered', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('is_incorrect', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=True),
        *_taxonomy_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_question_stats_user_id'), 'user_question_stats', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_question_stats_question_id'), 'user_question_stats', ['question_id'], unique=False)
    op.create_index(op.f('ix_user_question_stats_tenant_id'), 'user_question_stats', ['tenant_id'], unique=False)
    op.create_index('ix_user_question_stats_user_question', 'user_question_stats', ['user_id', 'question_id'], unique=False)
    op.create_index('ix_user_question_stats_user_incorrect', 'user_question_stats', ['user_id', 'is_incorrect'], unique=False)

    op.create_table(
        'user_bookmarks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        *_taxonomy_columns(),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_bookmarks_user_id'), 'user_bookmarks', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_bookmarks_question_id'), 'user_bookmarks', ['question_id'], unique=False)
    op.create_index(op.f('ix_user_bookmarks_tenant_id'), 'user_bookmarks', ['tenant_id'], unique=False)
    op.create_index('ix_user_bookmarks_user_question', 'user_bookmarks', ['user_id', 'question_id'], unique=False)

    op.create_table(
        'user_stats_counts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('total_answered', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('total_incorrect', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('total_bookmarked', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('answered_by_theme', sa.JSON(), nullable=False),
        sa.Column('answered_by_subtheme', sa.JSON(), nullable=False),
        sa.Column('answered_by_group', sa.JSON(), nullable=False),
        sa.Column('incorrect_by_theme', sa.JSON(), nullable=False),
        sa.Column('incorrect_by_subtheme', sa.JSON(), nullable=False),
        sa.Column('incorrect_by_group', sa.JSON(), nullable=False),
        sa.Column('bookmarked_by_theme', sa.JSON(), nullable=False),
        sa.Column('bookmarked_by_subtheme', sa.JSON(), nullable=False),
        sa.Column('bookmarked_by_group', sa.JSON(), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'user_id', name='uq_user_stats_counts_tenant_user')
    )
    op.create_index(op.f('ix_user_stats_counts_user_id'), 'user_stats_counts', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_stats_counts_tenant_id'), 'user_stats_counts', ['tenant_id'], unique=False)

    op.create_table(
        'custom_quizzes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('author_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('question_ids', sa.JSON(), nullable=False),
        sa.Column('test_mode', sa.String(length=16), nullable=False),
        sa.Column('question_mode', sa.String(length=16), nullable=False),
        sa.Column('selected_themes', sa.JSON(), nullable=False),
        sa.Column('selected_subthemes', sa.JSON(), nullable=False),
        sa.Column('selected_groups', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.ForeignKeyConstraint(['author_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_custom_quizzes_tenant_id'), 'custom_quizzes', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_custom_quizzes_author_id'), 'custom_quizzes', ['author_id'], unique=False)

    op.create_table(
        'quiz_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quiz_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('mode', sa.String(length=16), nullable=False),
        sa.Column('current_question_index', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('answer_feedback', sa.JSON(), nullable=False),
        sa.Column('is_complete', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['quiz_id'], ['custom_quizzes.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_quiz_sessions_quiz_id'), 'quiz_sessions', ['quiz_id'], unique=False)
    op.create_index(op.f('ix_quiz_sessions_user_id'), 'quiz_sessions', ['user_id'], unique=False)
    op.create_index(op.f('ix_quiz_sessions_tenant_id'), 'quiz_sessions', ['tenant_id'], unique=False)

    op.create_table(
        'quiz_creation_jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('progress', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('progress_message', sa.String(length=255), nullable=True),
        sa.Column('input_json', sa.JSON(), nullable=False),
        sa.Column('step_state_json', sa.JSON(), nullable=False),
        sa.Column('step_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('workflow_id', sa.String(length=64), nullable=True),
        sa.Column('quiz_id', sa.Integer(), nullable=True),
        sa.Column('question_count', sa.Integer(), nullable=True),
        sa.Column('error', sa.String(length=64), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.ForeignKeyConstraint(['quiz_id'], ['custom_quizzes.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_quiz_creation_jobs_user_id'), 'quiz_creation_jobs', ['user_id'], unique=False)
    op.create_index(op.f('ix_quiz_creation_jobs_tenant_id'), 'quiz_creation_jobs', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_quiz_creation_jobs_status'), 'quiz_creation_jobs', ['status'], unique=False)
    op.create_index(op.f('ix_quiz_creation_jobs_workflow_id'), 'quiz_creation_jobs', ['workflow_id'], unique=False)


def downgrade() -> None:
    op.drop_table('quiz_creation_jobs')
    op.drop_table('quiz_sessions')
    op.drop_table('custom_quizzes')
    op.drop_table('user_stats_counts')
    op.drop_table('user_bookmarks')
    op.drop_table('user_question_stats')
    op.drop_table('questions')
    op.drop_table('question_groups')
    op.drop_table('subthemes')
    op.drop_table('themes')
    op.drop_table('users')
    op.drop_table('tenants')
