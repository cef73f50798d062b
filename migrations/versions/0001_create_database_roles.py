"""create database roles

Revision ID: 0001
Revises: 
Create Date: 2025-08-04 06:26:14

"""
from typing import Sequence, Union

from alembic import op

from rls_projects.core.config import settings
from rls_projects.core.rls.policies import drop_role_statements, role_statements
from rls_projects.core.rls.roles import PrincipalMap

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    principals = PrincipalMap.from_settings(settings.rls)
    for statement in role_statements(principals, settings.rls.login_role):
        op.execute(statement)


def downgrade() -> None:
    principals = PrincipalMap.from_settings(settings.rls)
    for statement in drop_role_statements(principals):
        op.execute(statement)
