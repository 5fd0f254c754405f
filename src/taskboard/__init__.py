"""taskboard - Terminal Kanban board backed by a REST task service."""

__version__ = "0.1.0"
