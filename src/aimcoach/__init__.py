"""
AimCoach - Coaching Orchestration for FPS Aim Training

Analyzes stored KovaaK's / Aim Lab runs and talks with the player about them.
A conversational turn is either answered directly or delegated to one of four
structured task pipelines (daily report, score analysis, playlist building,
progress review).

Usage:
    from aimcoach import build_orchestrator

    orchestrator = build_orchestrator()
    state = await orchestrator.invoke("player-1", [{"role": "user", "content": "hi"}])
    print(state.messages[-1].content)
"""

__version__ = "0.1.0"
__author__ = "AimCoach Contributors"


def __getattr__(name):
    """Lazy import for heavy dependencies."""
    if name == "ConversationOrchestrator":
        from aimcoach.coaching.orchestrator import ConversationOrchestrator
        return ConversationOrchestrator
    elif name == "build_orchestrator":
        from aimcoach.coaching.wiring import build_orchestrator
        return build_orchestrator
    elif name == "TaskRouter":
        from aimcoach.pipelines.router import TaskRouter
        return TaskRouter
    elif name == "ContextDetector":
        from aimcoach.ai.context import ContextDetector
        return ContextDetector
    elif name == "IntentClassifier":
        from aimcoach.ai.intent import IntentClassifier
        return IntentClassifier
    elif name == "CoachingStatusService":
        from aimcoach.coaching.status import CoachingStatusService
        return CoachingStatusService
    raise AttributeError(f"module 'aimcoach' has no attribute '{name}'")


__all__ = [
    # Version
    "__version__",
    # Orchestration
    "ConversationOrchestrator",
    "build_orchestrator",
    "TaskRouter",
    # Classification
    "ContextDetector",
    "IntentClassifier",
    # Status
    "CoachingStatusService",
]
