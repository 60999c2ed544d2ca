"""Playlist building from the most recent runs."""

import logging
from typing import Literal

from pydantic import BaseModel, Field

from aimcoach.ai.prompts import PLAYLIST_PROMPT
from aimcoach.core.constants import Difficulty, TaskType, UserContext
from aimcoach.core.schemas import Playlist, PlaylistResult, PlaylistScenario
from aimcoach.infra.sources import PlaylistStore
from aimcoach.pipelines.base import TaskPipeline
from aimcoach.pipelines.stats import summarize_activity

logger = logging.getLogger(__name__)

# Seconds per scenario in the starter playlist
STARTER_SCENARIO_SECONDS = 300


class ScenarioDraft(BaseModel):
    name: str
    duration: int = Field(gt=0, description="Duration in seconds")
    difficulty: Literal["beginner", "intermediate", "advanced"]
    focus_skills: list[str] = Field(default_factory=list)


class PlaylistDraft(BaseModel):
    """Model output for playlist building."""

    weaknesses: list[str] = Field(default_factory=list)
    scenarios: list[ScenarioDraft] = Field(min_length=1)
    title: str
    description: str
    reasoning: str


def starter_playlist(user_id: str) -> Playlist:
    """Fixed beginner playlist for players with no recorded runs."""
    return Playlist(
        user_id=user_id,
        title="Beginner Aim Fundamentals",
        description="An introductory playlist for building core aiming skills.",
        scenarios=[
            PlaylistScenario(
                name="1w6ts reload",
                duration=STARTER_SCENARIO_SECONDS,
                difficulty=Difficulty.BEGINNER,
                focus_skills=["tracking", "precision"],
            ),
            PlaylistScenario(
                name="1w2ts reload",
                duration=STARTER_SCENARIO_SECONDS,
                difficulty=Difficulty.BEGINNER,
                focus_skills=["flicking", "target_switching"],
            ),
        ],
        target_weaknesses=["fundamentals"],
        reasoning="Start with basic scenarios to build a foundation.",
    )


class PlaylistBuildingPipeline(TaskPipeline):
    task_type = TaskType.PLAYLIST_BUILDING

    def __init__(self, *args, playlist_store: PlaylistStore | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.playlist_store = playlist_store

    async def run(self, user_id: str, user_context: UserContext) -> PlaylistResult:
        now = self.clock()
        records = await self.activity.recent(user_id, self.config.playlist_history_limit)

        if not records:
            playlist = starter_playlist(user_id)
            playlist.created_at = now
        else:
            summary = summarize_activity(records, self.config.trend_threshold)
            draft = await self.synthesize(
                PLAYLIST_PROMPT.format(user_context=user_context, summary=summary.to_prompt()),
                PlaylistDraft,
            )
            playlist = Playlist(
                user_id=user_id,
                title=draft.title,
                description=draft.description,
                scenarios=[
                    PlaylistScenario(
                        name=s.name,
                        duration=s.duration,
                        difficulty=Difficulty(s.difficulty),
                        focus_skills=s.focus_skills,
                    )
                    for s in draft.scenarios
                ],
                target_weaknesses=draft.weaknesses,
                reasoning=draft.reasoning,
                created_at=now,
            )

        if self.playlist_store is not None and self.config.save_playlists:
            await self.playlist_store.save(playlist)

        logger.info(
            "Playlist built for user=%s: scenarios=%d total_duration=%ds",
            user_id,
            len(playlist.scenarios),
            playlist.total_duration,
        )
        return PlaylistResult(data=playlist, content=_content(playlist))


def _content(playlist: Playlist) -> str:
    minutes = playlist.total_duration / 60
    lines = [
        f"Playlist created: {playlist.title}",
        playlist.description,
        f"Total duration: {minutes:.0f} min",
    ]
    for s in playlist.scenarios:
        line = f"- {s.name} ({s.duration // 60}m {s.duration % 60:02d}s, {s.difficulty.value})"
        if s.focus_skills:
            line += f": {', '.join(s.focus_skills)}"
        lines.append(line)
    return "\n".join(lines)
