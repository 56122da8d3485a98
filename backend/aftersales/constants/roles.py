"""Central enum-like definitions for roles, statuses and other domain codes.

Extend cautiously; codes are persisted as plain strings. Role sets below are the only
place authorization membership lists are spelled out.
"""
from __future__ import annotations

# --- Roles ---
COMPANY_MANAGER = 'COMPANY_MANAGER'
DEPUTY_MANAGER = 'DEPUTY_MANAGER'
DEPARTMENT_MANAGER = 'DEPARTMENT_MANAGER'
SECTION_SUPERVISOR = 'SECTION_SUPERVISOR'
TECHNICIAN = 'TECHNICIAN'
WAREHOUSE_KEEPER = 'WAREHOUSE_KEEPER'

ALL_ROLES = (COMPANY_MANAGER, DEPUTY_MANAGER, DEPARTMENT_MANAGER, SECTION_SUPERVISOR, TECHNICIAN, WAREHOUSE_KEEPER)

# Roles that see every department
GLOBAL_ROLES = frozenset({COMPANY_MANAGER, DEPUTY_MANAGER})
# Roles scoped to their own department
DEPARTMENT_ROLES = frozenset({DEPARTMENT_MANAGER, SECTION_SUPERVISOR})

MANAGER_ROLES = frozenset({COMPANY_MANAGER, DEPUTY_MANAGER, DEPARTMENT_MANAGER})
ASSIGNER_ROLES = MANAGER_ROLES | {SECTION_SUPERVISOR}
INVENTORY_WRITER_ROLES = frozenset({WAREHOUSE_KEEPER})
# Everyone who may look at the spare part catalogue (writes stay with INVENTORY_WRITER_ROLES)
INVENTORY_READER_ROLES = ASSIGNER_ROLES | INVENTORY_WRITER_ROLES
# Custom status catalogue; the same list guarded all five catalogue endpoints
STATUS_CATALOG_ROLES = ASSIGNER_ROLES | {TECHNICIAN}

# --- Request lifecycle ---
STATUS_NEW = 'NEW'
STATUS_ASSIGNED = 'ASSIGNED'
STATUS_UNDER_INSPECTION = 'UNDER_INSPECTION'
STATUS_WAITING_PARTS = 'WAITING_PARTS'
STATUS_IN_REPAIR = 'IN_REPAIR'
STATUS_COMPLETED = 'COMPLETED'
STATUS_CLOSED = 'CLOSED'
ALL_STATUSES = (
    STATUS_NEW, STATUS_ASSIGNED, STATUS_UNDER_INSPECTION, STATUS_WAITING_PARTS,
    STATUS_IN_REPAIR, STATUS_COMPLETED, STATUS_CLOSED,
)
FINISHED_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CLOSED})

PRIORITIES = ('LOW', 'NORMAL', 'HIGH', 'URGENT')
DEFAULT_PRIORITY = 'NORMAL'

UNDER_WARRANTY = 'UNDER_WARRANTY'
OUT_OF_WARRANTY = 'OUT_OF_WARRANTY'
WARRANTY_STATUSES = (UNDER_WARRANTY, OUT_OF_WARRANTY)

ON_SITE = 'ON_SITE'
WORKSHOP = 'WORKSHOP'
EXECUTION_METHODS = (ON_SITE, WORKSHOP)

COST_TYPES = ('PARTS', 'LABOR', 'TRANSPORTATION', 'OTHER')

# --- Activity log ---
ACTIVITY_STATUS_CHANGE = 'STATUS_CHANGE'
ACTIVITY_ASSIGNMENT = 'ASSIGNMENT'
ACTIVITY_COMMENT = 'COMMENT'
ACTIVITY_COST_ADDED = 'COST_ADDED'
ACTIVITY_CREATED = 'CREATED'
ACTIVITY_UPDATED = 'UPDATED'
ACTIVITY_TYPES = (
    ACTIVITY_STATUS_CHANGE, ACTIVITY_ASSIGNMENT, ACTIVITY_COMMENT,
    ACTIVITY_COST_ADDED, ACTIVITY_CREATED, ACTIVITY_UPDATED,
)

# --- Notifications ---
NOTIFY_ASSIGNMENT = 'ASSIGNMENT'
NOTIFY_OVERDUE = 'OVERDUE'
NOTIFY_STATUS_CHANGE = 'STATUS_CHANGE'
NOTIFY_COMPLETION = 'COMPLETION'
NOTIFY_WAREHOUSE_UPDATE = 'WAREHOUSE_UPDATE'
NOTIFICATION_TYPES = (NOTIFY_ASSIGNMENT, NOTIFY_OVERDUE, NOTIFY_STATUS_CHANGE, NOTIFY_COMPLETION, NOTIFY_WAREHOUSE_UPDATE)
