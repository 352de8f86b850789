"""Minimum role for each gated action (roles are ordinal: user < manager < admin)."""

from app.db.enums.auth import Role

# See every record in the org (show_all) and assign tasks to others
MIN_ROLE_VIEW_ALL = Role.MANAGER

# Delete any contact/deal/task regardless of ownership
MIN_ROLE_DELETE_ANY = Role.MANAGER

# Manage org settings
MIN_ROLE_MANAGE_SETTINGS = Role.ADMIN

# Create, update and deactivate users
MIN_ROLE_MANAGE_USERS = Role.ADMIN

# View the audit trail
MIN_ROLE_VIEW_AUDIT = Role.MANAGER

# Send system notifications to other users
MIN_ROLE_ANNOUNCE = Role.MANAGER

# Receive notify_admins fan-out
MIN_ROLE_NOTIFY_ADMINS = Role.MANAGER
