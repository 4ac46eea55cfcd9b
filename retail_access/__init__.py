"""
Hierarchy-scoped access control for a multi-tenant retail chain platform.

Organizations are trees of company -> regional -> store units. Users hold one
of four ranked roles (MASTER, GO, GR, STORE_MANAGER) and, through positions,
a unit and a set of departments. This package decides what an actor may see
and do inside that tree.
"""

__version__ = "0.1.0"
