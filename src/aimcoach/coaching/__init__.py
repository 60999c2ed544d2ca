"""
AimCoach Coaching - Conversation orchestration and status.

Live modules:
- orchestrator: The two-step chat graph (detect_context -> chat_agent)
- status: Dashboard snapshot of a player's coaching state
- wiring: Builds the engine from configuration
"""

__all__: list[str] = ["orchestrator", "status", "wiring"]
