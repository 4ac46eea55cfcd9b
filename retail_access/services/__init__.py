"""
Hierarchy access control services.

Import the service modules directly; repositories depend on
services.hierarchy_graph, so this package does not import its modules
eagerly.
"""
