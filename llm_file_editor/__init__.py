"""
llm_file_editor — ask an LLM to modify one file, review the diff, apply it.

Public API for library usage::

    from llm_file_editor import EditSession, ProviderRouter

    session = EditSession(router, "openrouter", review=lambda view, src: True)
    outcome = session.run("app.py", "Add type hints to every function")
"""

from .llm.router import ModelSelection, ProviderRouter
from .session import EditSession, SessionOutcome, SessionState

__version__ = "0.1.0"

__all__ = ["EditSession", "SessionOutcome", "SessionState", "ModelSelection", "ProviderRouter"]
