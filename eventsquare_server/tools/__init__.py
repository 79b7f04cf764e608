"""
Operational tools for EventSquare.

- users_cli: create users and manage their roles
"""
