"""Change notifications on reservation tables

Revision ID: 002
Revises: 001
Create Date: 2025-01-15 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOTIFIED_TABLES = ('reservations', 'reservation_table_assignments')


def upgrade() -> None:
    # Payload matches app.services.change_feed.ChangeEvent
    op.execute(
        """
        CREATE OR REPLACE FUNCTION notify_reservation_change() RETURNS trigger AS $$
        DECLARE
            changed_id uuid;
        BEGIN
            IF TG_OP = 'DELETE' THEN
                changed_id := OLD.id;
            ELSE
                changed_id := NEW.id;
            END IF;
            PERFORM pg_notify(
                'tablebook_changes',
                json_build_object(
                    'table', TG_TABLE_NAME,
                    'operation', TG_OP,
                    'record_id', changed_id::text
                )::text
            );
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql;
        """
    )

    for table in NOTIFIED_TABLES:
        op.execute(
            f"""
            CREATE TRIGGER {table}_notify_change
            AFTER INSERT OR UPDATE OR DELETE ON {table}
            FOR EACH ROW EXECUTE FUNCTION notify_reservation_change();
            """
        )


def downgrade() -> None:
    for table in NOTIFIED_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS {table}_notify_change ON {table};")
    op.execute("DROP FUNCTION IF EXISTS notify_reservation_change();")
