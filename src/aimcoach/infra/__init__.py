"""
AimCoach Infrastructure - Storage behind the coaching engine.

This module contains:
- sources: Collaborator interfaces and in-memory implementations
- database: SQLite-backed runs, playlists and conversation checkpoints
"""

__all__: list[str] = ["sources", "database"]
