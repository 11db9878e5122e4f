"""Orchestrator contract implementations."""

from nerve.orchestrator.backend.http_transport import HttpOrchestrator
from nerve.orchestrator.backend.scripted import ScriptedOrchestrator

__all__ = [
    "HttpOrchestrator",
    "ScriptedOrchestrator",
]
