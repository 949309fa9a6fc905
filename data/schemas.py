# data/schemas.py
"""Payroll schema data dictionary, access lists and canned queries."""
import re

DATA_DICTIONARY = {
    "clients": {
        "description": "Client organisations whose payrolls are processed",
        "columns": {
            "id": "uuid!",
            "name": "String!",
            "active": "Boolean",
            "contactPerson": "String",
            "contactEmail": "String",
            "contactPhone": "String",
            "createdAt": "timestamptz",
            "updatedAt": "timestamptz",
        },
        "relationships": {
            "payrolls": ("payrolls", "array"),
        },
    },
    "payrolls": {
        "description": "Payroll configurations, one row per payroll version",
        "columns": {
            "id": "uuid!",
            "name": "String!",
            "status": "String",
            "clientId": "uuid!",
            "managerUserId": "uuid",
            "primaryConsultantUserId": "uuid",
            "backupConsultantUserId": "uuid",
            "goLiveDate": "date",
            "supersededDate": "date",
            "payrollSystem": "String",
            "employeeCount": "Int",
            "processingTime": "Int",
            "createdAt": "timestamptz",
            "updatedAt": "timestamptz",
        },
        "relationships": {
            "client": ("clients", "object"),
            "manager": ("users", "object"),
            "primaryConsultant": ("users", "object"),
            "backupConsultant": ("users", "object"),
            "payrollDates": ("payroll_dates", "array"),
        },
    },
    "users": {
        "description": "Staff members (restricted: only safe profile fields may be selected)",
        "columns": {
            "id": "uuid!",
            "name": "String!",
            "email": "String",
            "position": "String",
            "status": "String",
            "createdAt": "timestamptz",
            "updatedAt": "timestamptz",
        },
        "relationships": {
            "managedPayrolls": ("payrolls", "array"),
            "primaryConsultantPayrolls": ("payrolls", "array"),
            "backupConsultantPayrolls": ("payrolls", "array"),
        },
    },
    "workSchedule": {
        "description": "Working hours per staff member per day",
        "columns": {
            "id": "uuid!",
            "userId": "uuid!",
            "workDay": "String",
            "workHours": "numeric",
            "adminTimeHours": "numeric",
            "date": "date",
        },
        "relationships": {
            "user": ("users", "object"),
        },
    },
    "payrollDates": {
        "description": "Scheduled EFT and processing dates per payroll",
        "columns": {
            "id": "uuid!",
            "payrollId": "uuid!",
            "originalEftDate": "date",
            "adjustedEftDate": "date",
            "processingDate": "date",
            "notes": "String",
        },
        "relationships": {
            "payroll": ("payrolls", "object"),
        },
    },
    "leave": {
        "description": "Staff leave requests",
        "columns": {
            "id": "uuid!",
            "userId": "uuid!",
            "startDate": "date",
            "endDate": "date",
            "leaveType": "String",
            "status": "String",
            "reason": "String",
        },
        "relationships": {
            "user": ("users", "object"),
        },
    },
    "notes": {
        "description": "Free-text notes attached to clients or payrolls",
        "columns": {
            "id": "uuid!",
            "entityType": "String",
            "entityId": "uuid",
            "content": "String",
            "isImportant": "Boolean",
            "createdAt": "timestamptz",
        },
        "relationships": {},
    },
    "userSkills": {
        "description": "Skills held by staff members",
        "columns": {
            "userId": "uuid!",
            "skillName": "String!",
            "proficiencyLevel": "String",
        },
        "relationships": {
            "user": ("users", "object"),
        },
    },
}

# Tables rendered with full detail in the schema context
BUSINESS_TABLES = [
    "clients", "payrolls", "users", "work_schedule", "time_entries",
    "billing_items", "payroll_dates", "notes", "leave", "user_skills",
]

MAX_SUPPORTING_TABLES = 10

SAFE_TABLES = [
    "payrolls", "payroll_dates", "payroll_cycles", "payroll_dashboard_stats",
    "current_payrolls", "payroll_version_results", "payroll_assignments",
    "payroll_assignment_audit", "payroll_activation_results",
    "latest_payroll_version_results", "payroll_version_history_results",
    "clients", "work_schedule", "holidays", "notes", "leave", "user_skills",
    "payroll_required_skills", "consultant_capacity_overview",
    "team_capacity_by_position", "payroll_date_types", "external_systems",
    "feature_flags", "resources", "position_admin_defaults",
]

RESTRICTED_TABLES = ["users", "app_settings"]

FORBIDDEN_TABLES = [
    "audit_log", "auth_events", "data_access_log", "permission_changes",
    "permission_usage_report", "slow_queries", "user_access_summary",
    "permissions", "roles", "userroles", "role_permissions",
    "usersrole_backup", "billing_invoice_item", "billing_event_log",
    "billing_invoice", "billing_items", "client_billing_assignment",
    "adjustment_rules", "payroll_triggers_status",
]

FIELD_RESTRICTIONS = {
    "users": {
        "forbidden": [
            "password_hash", "auth_token", "clerk_id", "metadata",
            "private_metadata", "unsafe_metadata", "email_addresses",
            "phone_numbers", "web3_wallets", "passkeys", "backup_codes",
            "totp", "external_accounts",
        ],
        "allowed": [
            "id", "name", "email", "position", "status", "created_at",
            "updated_at",
        ],
    },
    "app_settings": {
        "forbidden": [
            "secret_key", "api_key", "webhook_secret", "encryption_key",
            "private_config",
        ],
        "allowed": ["id", "name", "description", "is_enabled", "is_public", "value"],
    },
}

# Keyword -> canned query used when no query can be recovered from model output
FALLBACK_QUERIES = [
    (("client",), """query GetClients {
  clients(limit: 10, orderBy: { createdAt: DESC }) {
    id
    name
    active
    contactPerson
    contactEmail
    createdAt
  }
}"""),
    (("payroll",), """query GetPayrolls {
  payrolls(limit: 10, orderBy: { createdAt: DESC }) {
    id
    name
    status
    goLiveDate
    supersededDate
    client {
      id
      name
    }
  }
}"""),
    (("user", "staff"), """query GetUsers {
  users(limit: 10) {
    id
    name
    email
    position
    status
  }
}"""),
    (("schedule", "work"), """query GetWorkSchedule {
  workSchedule(limit: 10) {
    id
    date
    workHours
    adminTimeHours
    user {
      id
      name
      position
    }
  }
}"""),
]

DEFAULT_FALLBACK_QUERY = """query GetBasicData {
  clients(limit: 5, where: { active: { _eq: true } }) {
    id
    name
    active
    contactPerson
  }
}"""

MINIMAL_SCHEMA_CONTEXT = """# Available Tables (minimal)

clients ( id, name, active, contactPerson, contactEmail, createdAt )
payrolls ( id, name, status, goLiveDate, supersededDate, client { id name } )
users ( id, name, email, position, status )
workSchedule ( id, date, workHours, adminTimeHours, user { id name } )

Use camelCase names, where: { field: { _eq: "value" } } filters and limit: N.
"""

QUERY_PATTERNS = """## QUERY PATTERNS
- Filter with where: { field: { _eq: "value" } }
- Sort with orderBy: { field: ASC } or { field: DESC }
- Limit results with limit: N
- Select relationships with nested field selection
- Operators: _eq, _neq, _gt, _gte, _lt, _lte, _in, _nin, _like, _ilike
- Always use double quotes for string values
"""

BUSINESS_CONTEXT = """## BUSINESS CONTEXT
- Payrolls belong to a client and are serviced by a manager, a primary and a backup consultant
- Payroll dates hold the scheduled EFT and processing dates for each payroll
- Work schedules and leave describe staff capacity
- Date fields are goLiveDate and supersededDate (not startDate/endDate)
"""


def _relationship_targets() -> dict:
    targets = {}
    for info in DATA_DICTIONARY.values():
        for rel, (target, _) in info.get("relationships", {}).items():
            targets.setdefault(rel, target)
    return targets

# Relationship field name -> table it resolves to, e.g. payrolls.manager -> users
RELATIONSHIP_TARGETS = _relationship_targets()


def _boolean_columns() -> frozenset:
    names = set()
    for info in DATA_DICTIONARY.values():
        for column, column_type in info["columns"].items():
            if column_type.rstrip("!") == "Boolean":
                names.add(column)
                names.add(re.sub(r"(?<!^)(?=[A-Z])", "_", column).lower())
    return frozenset(names)

# Columns whose quoted "true"/"false"/"null" values are unquoted during repair
BOOLEAN_COLUMNS = _boolean_columns()
