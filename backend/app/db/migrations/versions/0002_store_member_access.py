"""Store member access functions and RLS

Revision ID: 0002_store_member_access
Revises: 0001_initial
Create Date: 2026-01-12 00:00:01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "0002_store_member_access"
down_revision: Union[str, None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # security definer so the policies below can consult memberships without recursing
    op.execute("""
        CREATE OR REPLACE FUNCTION get_user_store_role(p_user_id uuid, p_store_id uuid)
        RETURNS text AS $$
            SELECT sm.role
            FROM store_members sm
            JOIN tenants t ON t.id = sm.store_id
            WHERE sm.user_id = p_user_id
              AND sm.store_id = p_store_id
              AND sm.is_active = true
              AND t.deleted_at IS NULL
        $$ LANGUAGE sql STABLE SECURITY DEFINER
    """)
    op.execute("""
        CREATE OR REPLACE FUNCTION has_store_access(p_user_id uuid, p_store_id uuid)
        RETURNS boolean AS $$
            SELECT get_user_store_role(p_user_id, p_store_id) IS NOT NULL
        $$ LANGUAGE sql STABLE SECURITY DEFINER
    """)
    op.execute("""
        CREATE OR REPLACE FUNCTION has_store_role(p_user_id uuid, p_store_id uuid, p_required_role text)
        RETURNS boolean AS $$
            SELECT coalesce(
                array_position(ARRAY['viewer', 'editor', 'admin', 'owner'], get_user_store_role(p_user_id, p_store_id))
                >= array_position(ARRAY['viewer', 'editor', 'admin', 'owner'], p_required_role),
                false
            )
        $$ LANGUAGE sql STABLE SECURITY DEFINER
    """)

    op.execute("ALTER TABLE store_members ENABLE ROW LEVEL SECURITY")
    op.execute("""
        CREATE POLICY store_members_visibility ON store_members
        USING (
            user_id = nullif(current_setting('app.current_user_id', true), '')::uuid
            OR has_store_role(
                nullif(current_setting('app.current_user_id', true), '')::uuid,
                store_id,
                'admin'
            )
        )
        WITH CHECK (
            user_id = nullif(current_setting('app.current_user_id', true), '')::uuid
            OR has_store_role(
                nullif(current_setting('app.current_user_id', true), '')::uuid,
                store_id,
                'admin'
            )
        )
    """)


def downgrade() -> None:
    op.execute("DROP POLICY IF EXISTS store_members_visibility ON store_members")
    op.execute("ALTER TABLE store_members DISABLE ROW LEVEL SECURITY")
    op.execute("DROP FUNCTION IF EXISTS has_store_role(uuid, uuid, text)")
    op.execute("DROP FUNCTION IF EXISTS has_store_access(uuid, uuid)")
    op.execute("DROP FUNCTION IF EXISTS get_user_store_role(uuid, uuid)")
