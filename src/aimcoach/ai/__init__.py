"""
AimCoach AI - Model access, classification and chat tools.

Live modules:
- llm_client: Two-tier Anthropic client with structured output
- prompts: System and task prompt templates
- intent: Intent classification (patterns + model refinement)
- context: User context detection
- tools: Read-only tools for conversational replies
"""

__all__: list[str] = [
    "llm_client",
    "prompts",
    "intent",
    "context",
    "tools",
]
