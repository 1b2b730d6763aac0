"""
hexlists - Download Hexagon lists into a local database

A CLI tool that pulls a user's show lists from the Hexagon cloud backend
and merges them into a local SQLite database.
"""

__version__ = "1.0.0"
__author__ = "hexlists Team"
__description__ = "Download Hexagon lists into a local database"
