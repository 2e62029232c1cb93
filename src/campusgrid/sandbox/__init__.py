"""
campusgrid.sandbox — In-memory эмуляция REST API платформы CampusGrid.

    from campusgrid.sandbox import create_app
"""

from campusgrid.sandbox.app import create_app  # noqa: F401
