"""
Row-level security policy layer.

Declares the database side of tenant isolation: the NOLOGIN principals,
helper functions that read the executor's session parameters, grants, and
per-table policies. The same statements are applied by the Alembic
migrations and by the integration-test bootstrap.

Rule shape per tenant-owned table:
- admin principal: every row and command, while the session role is admin
- user principal: rows whose tenant column equals the session company;
  USING and WITH CHECK, so inserts and updates into another company fail
- readonly principal: SELECT only, same predicate

FORCE ROW LEVEL SECURITY applies the policies to the table owner too;
only the admin principal path reaches rows of every company.
"""

from __future__ import annotations

from dataclasses import dataclass

from rls_projects.core.rls.roles import PrincipalMap, Role, quote_identifier

HELPER_SCHEMA = "rls_helpers"


@dataclass(frozen=True)
class TablePolicy:
    """
    RLS rules for one table.

    tenant_column: column compared with the session company id.
    user_writable: user principal gets INSERT/UPDATE/DELETE within its company.
    self_update_column: user principal may UPDATE the row where this column
        equals the session user id.
    """

    table: str
    tenant_column: str
    user_writable: bool = False
    self_update_column: str | None = None

    @property
    def tenant_predicate(self) -> str:
        return f"{self.tenant_column} = {HELPER_SCHEMA}.current_company_id()"

    def policy_names(self) -> list[str]:
        names = [f"{self.table}_admin_all"]
        if self.user_writable:
            names.append(f"{self.table}_user_company")
        else:
            names.append(f"{self.table}_user_select")
        if self.self_update_column:
            names.append(f"{self.table}_user_update_self")
        names.append(f"{self.table}_readonly_select")
        return names


TENANT_TABLES: tuple[TablePolicy, ...] = (
    TablePolicy("companies", tenant_column="id"),
    TablePolicy("users", tenant_column="company_id", self_update_column="id"),
    TablePolicy("projects", tenant_column="company_id", user_writable=True),
)


def _list(principals: list[str]) -> str:
    return ", ".join(quote_identifier(p) for p in principals)


# ============================================================
# ROLES
# ============================================================

def role_statements(principals: PrincipalMap, login_role: str | None = None) -> list[str]:
    """Create the principals and let the login role switch into them."""
    statements = [
        (
            "DO $$ BEGIN "
            f"CREATE ROLE {quote_identifier(name)} NOLOGIN; "
            "EXCEPTION WHEN duplicate_object THEN NULL; "
            "END $$"
        )
        for name in principals.names
    ]
    grantee = quote_identifier(login_role) if login_role else "CURRENT_USER"
    statements.append(f"GRANT {_list(principals.names)} TO {grantee}")
    statements.append(f"GRANT USAGE ON SCHEMA public TO {_list(principals.names)}")
    return statements


def drop_role_statements(principals: PrincipalMap) -> list[str]:
    return [f"DROP ROLE IF EXISTS {quote_identifier(name)}" for name in reversed(principals.names)]


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def helper_statements(principals: PrincipalMap, settings_prefix: str = "app") -> list[str]:
    """
    Helper functions in a private schema.

    current_setting(name, true) is NULL when the parameter was never set and
    '' once a transaction-local value has been reverted; both read as NULL,
    which matches no row.
    """
    user_param = f"{settings_prefix}.current_user_id"
    company_param = f"{settings_prefix}.current_company_id"
    role_param = f"{settings_prefix}.current_user_role"

    return [
        f"CREATE SCHEMA IF NOT EXISTS {HELPER_SCHEMA}",
        f"GRANT USAGE ON SCHEMA {HELPER_SCHEMA} TO {_list(principals.names)}",
        f"""
        CREATE OR REPLACE FUNCTION {HELPER_SCHEMA}.current_user_id()
        RETURNS uuid
        LANGUAGE sql
        STABLE
        AS $$
          SELECT NULLIF(current_setting('{user_param}', true), '')::uuid
        $$
        """,
        f"""
        CREATE OR REPLACE FUNCTION {HELPER_SCHEMA}.current_company_id()
        RETURNS uuid
        LANGUAGE sql
        STABLE
        AS $$
          SELECT NULLIF(current_setting('{company_param}', true), '')::uuid
        $$
        """,
        f"""
        CREATE OR REPLACE FUNCTION {HELPER_SCHEMA}.is_admin()
        RETURNS boolean
        LANGUAGE sql
        STABLE
        AS $$
          SELECT COALESCE(current_setting('{role_param}', true) = '{Role.ADMIN.value}', false)
        $$
        """,
        f"GRANT EXECUTE ON ALL FUNCTIONS IN SCHEMA {HELPER_SCHEMA} TO {_list(principals.names)}",
    ]


# ============================================================
# TABLE POLICIES
# ============================================================

def table_statements(policy: TablePolicy, principals: PrincipalMap) -> list[str]:
    """Grants, RLS switches and policies for one table."""
    table = policy.table
    admin = quote_identifier(principals[Role.ADMIN])
    user = quote_identifier(principals[Role.USER])
    readonly = quote_identifier(principals[Role.READONLY])
    predicate = policy.tenant_predicate

    user_privileges = ["SELECT"]
    if policy.user_writable:
        user_privileges += ["INSERT", "UPDATE", "DELETE"]
    elif policy.self_update_column:
        user_privileges.append("UPDATE")

    statements = [
        f"GRANT SELECT, INSERT, UPDATE, DELETE ON {table} TO {admin}",
        f"GRANT {', '.join(user_privileges)} ON {table} TO {user}",
        f"GRANT SELECT ON {table} TO {readonly}",
        f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY",
        f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY",
    ]

    statements += [f"DROP POLICY IF EXISTS {name} ON {table}" for name in policy.policy_names()]

    statements.append(
        f"CREATE POLICY {table}_admin_all ON {table} "
        f"FOR ALL TO {admin} "
        f"USING ({HELPER_SCHEMA}.is_admin()) "
        f"WITH CHECK ({HELPER_SCHEMA}.is_admin())"
    )

    if policy.user_writable:
        statements.append(
            f"CREATE POLICY {table}_user_company ON {table} "
            f"FOR ALL TO {user} "
            f"USING ({predicate}) "
            f"WITH CHECK ({predicate})"
        )
    else:
        statements.append(
            f"CREATE POLICY {table}_user_select ON {table} "
            f"FOR SELECT TO {user} "
            f"USING ({predicate})"
        )

    if policy.self_update_column:
        own_row = f"{policy.self_update_column} = {HELPER_SCHEMA}.current_user_id()"
        statements.append(
            f"CREATE POLICY {table}_user_update_self ON {table} "
            f"FOR UPDATE TO {user} "
            f"USING ({own_row}) "
            f"WITH CHECK ({own_row} AND {predicate})"
        )

    statements.append(
        f"CREATE POLICY {table}_readonly_select ON {table} "
        f"FOR SELECT TO {readonly} "
        f"USING ({predicate})"
    )
    return statements


def drop_table_statements(policy: TablePolicy) -> list[str]:
    table = policy.table
    statements = [f"DROP POLICY IF EXISTS {name} ON {table}" for name in policy.policy_names()]
    statements += [
        f"ALTER TABLE {table} NO FORCE ROW LEVEL SECURITY",
        f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY",
    ]
    return statements


# ============================================================
# FULL INSTALL
# ============================================================

def install_statements(
    principals: PrincipalMap,
    *,
    login_role: str | None = None,
    settings_prefix: str = "app",
    tables: tuple[TablePolicy, ...] = TENANT_TABLES,
) -> list[str]:
    """Every statement needed on top of the plain schema, in order."""
    statements = role_statements(principals, login_role)
    statements += helper_statements(principals, settings_prefix)
    for policy in tables:
        statements += table_statements(policy, principals)
    return statements


def uninstall_statements(
    principals: PrincipalMap,
    *,
    tables: tuple[TablePolicy, ...] = TENANT_TABLES,
) -> list[str]:
    statements: list[str] = []
    for policy in reversed(tables):
        statements += drop_table_statements(policy)
    statements.append(f"DROP SCHEMA IF EXISTS {HELPER_SCHEMA} CASCADE")
    return statements
