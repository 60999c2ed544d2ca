"""
Assembly of the coaching engine from configuration.

Everything in the engine takes its collaborators through the constructor;
this module is the one place that picks concrete implementations.
"""

import logging
from dataclasses import dataclass

from aimcoach.ai.context import ContextDetector
from aimcoach.ai.intent import IntentClassifier
from aimcoach.ai.llm_client import GenerativeModel, get_model
from aimcoach.coaching.orchestrator import ConversationOrchestrator
from aimcoach.coaching.status import CoachingStatusService
from aimcoach.core.config import AimCoachConfig, get_config
from aimcoach.core.constants import ActivitySourceName
from aimcoach.infra.database import (
    DatabaseManager,
    SqlActivitySource,
    SqlCheckpointStore,
    SqlPlaylistStore,
    get_db,
)
from aimcoach.infra.sources import (
    ActivitySource,
    CheckpointStore,
    CompositeActivitySource,
    PlaylistStore,
)
from aimcoach.pipelines.daily_report import DailyReportPipeline
from aimcoach.pipelines.playlist_building import PlaylistBuildingPipeline
from aimcoach.pipelines.progress_review import ProgressReviewPipeline
from aimcoach.pipelines.router import TaskRouter
from aimcoach.pipelines.score_analysis import ScoreAnalysisPipeline

logger = logging.getLogger(__name__)


@dataclass
class CoachingComponents:
    """The wired engine."""

    activity: ActivitySource
    playlists: PlaylistStore
    checkpoints: CheckpointStore
    model: GenerativeModel
    detector: ContextDetector
    classifier: IntentClassifier
    router: TaskRouter
    orchestrator: ConversationOrchestrator
    status: CoachingStatusService


def build_router(
    activity: ActivitySource,
    model: GenerativeModel,
    playlists: PlaylistStore | None,
    config: AimCoachConfig,
) -> TaskRouter:
    """Create a TaskRouter with all four pipelines."""
    common = {"activity": activity, "model": model, "config": config.pipelines}
    return TaskRouter(
        [
            DailyReportPipeline(**common),
            ScoreAnalysisPipeline(**common),
            PlaylistBuildingPipeline(playlist_store=playlists, **common),
            ProgressReviewPipeline(**common),
        ]
    )


def build_components(
    config: AimCoachConfig | None = None,
    *,
    activity: ActivitySource | None = None,
    playlists: PlaylistStore | None = None,
    checkpoints: CheckpointStore | None = None,
    model: GenerativeModel | None = None,
    db: DatabaseManager | None = None,
) -> CoachingComponents:
    """
    Wire the coaching engine.

    Collaborators not passed in are backed by the SQLite store (KovaaK's and
    Aim Lab runs merged into one activity view) and the Anthropic model.
    """
    config = config or get_config()

    if activity is None or playlists is None or checkpoints is None:
        db = db or get_db()
        if activity is None:
            activity = CompositeActivitySource(
                [
                    SqlActivitySource(db, ActivitySourceName.KOVAAKS),
                    SqlActivitySource(db, ActivitySourceName.AIMLAB),
                ]
            )
        if playlists is None:
            playlists = SqlPlaylistStore(db)
        if checkpoints is None:
            checkpoints = SqlCheckpointStore(db)

    if model is None:
        model = get_model()

    detector = ContextDetector(activity, config.context)
    classifier = IntentClassifier(model, refine_with_model=config.chat.model_intent_refinement)
    router = build_router(activity, model, playlists, config)
    orchestrator = ConversationOrchestrator(
        detector=detector,
        playlists=playlists,
        classifier=classifier,
        router=router,
        model=model,
        checkpoints=checkpoints,
        activity=activity,
        config=config.chat,
    )
    status = CoachingStatusService(detector, activity, playlists)

    logger.debug("Coaching engine wired: model=%s", type(model).__name__)
    return CoachingComponents(
        activity=activity,
        playlists=playlists,
        checkpoints=checkpoints,
        model=model,
        detector=detector,
        classifier=classifier,
        router=router,
        orchestrator=orchestrator,
        status=status,
    )


def build_orchestrator(config: AimCoachConfig | None = None, **overrides) -> ConversationOrchestrator:
    """Convenience wrapper returning only the orchestrator."""
    return build_components(config, **overrides).orchestrator
