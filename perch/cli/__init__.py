"""
Perch command-line interface.

Usage:
    perch routes myproject.app:app
    perch routes myproject.app:create_app --json
"""

__cli_name__ = "perch"
