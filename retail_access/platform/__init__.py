"""
Platform-level modules for hierarchy access control.

- errors: structured error classes
- rbac: authorize / accessible_units / can_manage / context switching
"""
