"""Core Business Logic Module

Directory operations for the admin console, independent of the HTTP layer
except for the session guard in rbac.py.

Module Structure:
    - keycloak/      : Low-level Keycloak Admin API client
    - models.py      : Role, Profile, DirectoryUser, ConsoleSession
    - directory.py   : DirectoryService (list, invite, role change, delete, password)
    - console.py     : Admin page state (dialogs, notices, table rows)
    - credentials.py : Password change for the signed-in user
    - messages.py    : en/es notice catalogs
    - rbac.py        : Session guard and OIDC session helpers (Flask)
    - validators.py  : Input validation (email, role, password)

Usage Pattern:
    Import explicitly when needed:
        from admin_console.core.directory import DirectoryService, DirectoryError
        from admin_console.core.rbac import require_console_admin
"""
