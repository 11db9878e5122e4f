"""Client toolkit for orchestrator-driven LLM tasks and deterministic patch application."""

__version__ = "0.1.0"
