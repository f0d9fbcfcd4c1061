"""SQL for the PostgreSQL role store.

Queries carry a ``{schema}`` placeholder; the schema name is validated before
it is formatted in. Every statement filters by tenant_id.
"""

SCHEMA_DDL = """
    CREATE SCHEMA IF NOT EXISTS {schema};

    CREATE TABLE IF NOT EXISTS {schema}.role_assignments (
        id              TEXT PRIMARY KEY,
        person_id       TEXT NOT NULL,
        tenant_id       TEXT NOT NULL,
        role_type       TEXT NOT NULL,
        company_id      TEXT,
        department_id   TEXT,
        is_primary      BOOLEAN NOT NULL DEFAULT FALSE,
        status          TEXT NOT NULL DEFAULT 'active'
                        CHECK (status IN ('active', 'expired', 'deactivated')),
        assigned_by     TEXT,
        assigned_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        expires_at      TIMESTAMPTZ,
        deleted_at      TIMESTAMPTZ
    );

    CREATE UNIQUE INDEX IF NOT EXISTS uq_role_assignments_active
        ON {schema}.role_assignments (person_id, tenant_id, role_type, COALESCE(company_id, ''))
        WHERE status = 'active';

    CREATE INDEX IF NOT EXISTS ix_role_assignments_person
        ON {schema}.role_assignments (tenant_id, person_id) WHERE status = 'active';

    CREATE INDEX IF NOT EXISTS ix_role_assignments_expiry
        ON {schema}.role_assignments (tenant_id, expires_at)
        WHERE status = 'active' AND expires_at IS NOT NULL;

    CREATE TABLE IF NOT EXISTS {schema}.permission_grants (
        assignment_id   TEXT NOT NULL REFERENCES {schema}.role_assignments (id),
        tenant_id       TEXT NOT NULL,
        permission      TEXT NOT NULL,
        is_granted      BOOLEAN NOT NULL DEFAULT TRUE,
        granted_by      TEXT,
        granted_at      TIMESTAMPTZ,
        PRIMARY KEY (assignment_id, permission)
    );

    CREATE TABLE IF NOT EXISTS {schema}.advanced_permissions (
        id              TEXT PRIMARY KEY,
        assignment_id   TEXT NOT NULL REFERENCES {schema}.role_assignments (id),
        tenant_id       TEXT NOT NULL,
        resource        TEXT NOT NULL,
        action          TEXT NOT NULL,
        scope           TEXT NOT NULL
                        CHECK (scope IN ('global', 'tenant', 'company', 'department', 'self')),
        site_access     TEXT[] NOT NULL DEFAULT '{{}}',
        allowed_fields  TEXT[],
        conditions      JSONB NOT NULL DEFAULT '{{}}'::jsonb
    );

    CREATE TABLE IF NOT EXISTS {schema}.role_hierarchy_overrides (
        tenant_id       TEXT NOT NULL,
        role_type       TEXT NOT NULL,
        level           INTEGER NOT NULL,
        changed_by      TEXT NOT NULL,
        changed_at      TIMESTAMPTZ NOT NULL,
        PRIMARY KEY (tenant_id, role_type)
    );
"""

ASSIGNMENT_COLUMNS = """
    id, person_id, tenant_id, role_type, company_id, department_id, is_primary,
    status, assigned_by, assigned_at, expires_at, deleted_at
"""

FIND_ACTIVE_ASSIGNMENTS = """
    SELECT """ + ASSIGNMENT_COLUMNS + """
    FROM {schema}.role_assignments
    WHERE person_id = $1 AND tenant_id = $2 AND status = 'active' AND deleted_at IS NULL
      AND (expires_at IS NULL OR expires_at > $3)
    ORDER BY assigned_at, id
"""

FIND_ASSIGNMENTS_BY_ROLE = """
    SELECT """ + ASSIGNMENT_COLUMNS + """
    FROM {schema}.role_assignments
    WHERE tenant_id = $1 AND role_type = $2 AND status = 'active' AND deleted_at IS NULL
      AND (expires_at IS NULL OR expires_at > $3)
    ORDER BY assigned_at, id
"""

FIND_GRANTS = """
    SELECT assignment_id, permission, is_granted, granted_by, granted_at
    FROM {schema}.permission_grants
    WHERE tenant_id = $1 AND assignment_id = ANY($2::text[])
    ORDER BY assignment_id, permission
"""

FIND_ADVANCED_PERMISSIONS = """
    SELECT id, assignment_id, resource, action, scope, site_access, allowed_fields, conditions
    FROM {schema}.advanced_permissions
    WHERE tenant_id = $1 AND assignment_id = ANY($2::text[])
    ORDER BY assignment_id, id
"""

# Past-expiry rows the sweep has not reached yet still hold the active unique slot
EXPIRE_LAPSED_DUPLICATE = """
    UPDATE {schema}.role_assignments
    SET status = 'expired', deleted_at = $5
    WHERE person_id = $1 AND tenant_id = $2 AND role_type = $3
      AND COALESCE(company_id, '') = COALESCE($4::text, '')
      AND status = 'active' AND expires_at IS NOT NULL AND expires_at <= $5
"""

INSERT_ASSIGNMENT = """
    INSERT INTO {schema}.role_assignments (
        id, person_id, tenant_id, role_type, company_id, department_id, is_primary,
        status, assigned_by, assigned_at, expires_at
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, 'active', $8, $9, $10)
"""

INSERT_GRANT = """
    INSERT INTO {schema}.permission_grants (
        assignment_id, tenant_id, permission, is_granted, granted_by, granted_at
    ) VALUES ($1, $2, $3, $4, $5, $6)
"""

INSERT_ADVANCED_PERMISSION = """
    INSERT INTO {schema}.advanced_permissions (
        id, assignment_id, tenant_id, resource, action, scope, site_access, allowed_fields, conditions
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb)
"""

DEACTIVATE_ASSIGNMENT = """
    UPDATE {schema}.role_assignments
    SET status = 'deactivated', deleted_at = $3
    WHERE id = $1 AND tenant_id = $2 AND status = 'active'
    RETURNING id
"""

DELETE_GRANTS = """
    DELETE FROM {schema}.permission_grants
    WHERE assignment_id = $1 AND tenant_id = $2
"""

DELETE_ADVANCED_PERMISSIONS = """
    DELETE FROM {schema}.advanced_permissions
    WHERE assignment_id = $1 AND tenant_id = $2
"""

LOCK_ACTIVE_ASSIGNMENT = """
    SELECT id FROM {schema}.role_assignments
    WHERE id = $1 AND tenant_id = $2 AND status = 'active'
    FOR UPDATE
"""

# Bounded batch; SKIP LOCKED lets concurrent sweeps split the work
SWEEP_EXPIRED = """
    WITH expired AS (
        SELECT id FROM {schema}.role_assignments
        WHERE tenant_id = $1 AND status = 'active'
          AND expires_at IS NOT NULL AND expires_at <= $2
        ORDER BY expires_at, id
        LIMIT $3
        FOR UPDATE SKIP LOCKED
    )
    UPDATE {schema}.role_assignments AS ra
    SET status = 'expired', deleted_at = $2
    FROM expired
    WHERE ra.id = expired.id
    RETURNING ra.id
"""

FIND_HIERARCHY_OVERRIDES = """
    SELECT role_type, level
    FROM {schema}.role_hierarchy_overrides
    WHERE tenant_id = $1
"""

UPSERT_HIERARCHY_OVERRIDE = """
    INSERT INTO {schema}.role_hierarchy_overrides (tenant_id, role_type, level, changed_by, changed_at)
    VALUES ($1, $2, $3, $4, $5)
    ON CONFLICT (tenant_id, role_type)
    DO UPDATE SET level = EXCLUDED.level, changed_by = EXCLUDED.changed_by, changed_at = EXCLUDED.changed_at
"""
