"""
AimCoach Pipelines - Structured coaching tasks.

Live modules:
- base: Two-phase pipeline base class
- stats: pandas summaries sent to the model
- daily_report, score_analysis, playlist_building, progress_review: the four tasks
- router: TaskType -> pipeline dispatch with failure capture
"""

__all__: list[str] = [
    "base",
    "stats",
    "daily_report",
    "score_analysis",
    "playlist_building",
    "progress_review",
    "router",
]
