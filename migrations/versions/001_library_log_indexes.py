"""Add time-range indexes used by the analytics dashboard

Revision ID: 001_library_log_indexes
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op


# revision identifiers, used by Alembic.
revision = '001_library_log_indexes'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Daily activity and growth charts scan these by date
    op.create_index('ix_download_logs_downloaded_at', 'download_logs', ['downloaded_at'])
    op.create_index('ix_view_logs_viewed_at', 'view_logs', ['viewed_at'])
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    # Activity log filters
    op.create_index('ix_user_activity_logs_user_created', 'user_activity_logs', ['user_id', 'created_at'])
    op.create_index('ix_user_activity_logs_created_at', 'user_activity_logs', ['created_at'])

    # Popular search terms
    op.create_index('ix_search_history_query', 'search_history', ['search_query'])
    op.create_index('ix_search_history_created_at', 'search_history', ['created_at'])

    # Recent content feed
    op.create_index('ix_books_created_at', 'books', ['created_at'])
    op.create_index('ix_tutorials_created_at', 'tutorials', ['created_at'])


def downgrade():
    op.drop_index('ix_tutorials_created_at', table_name='tutorials')
    op.drop_index('ix_books_created_at', table_name='books')
    op.drop_index('ix_search_history_created_at', table_name='search_history')
    op.drop_index('ix_search_history_query', table_name='search_history')
    op.drop_index('ix_user_activity_logs_created_at', table_name='user_activity_logs')
    op.drop_index('ix_user_activity_logs_user_created', table_name='user_activity_logs')
    op.drop_index('ix_users_created_at', table_name='users')
    op.drop_index('ix_view_logs_viewed_at', table_name='view_logs')
    op.drop_index('ix_download_logs_downloaded_at', table_name='download_logs')
