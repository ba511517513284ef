"""Turning model output into reviewable, atomically applied file edits."""

from .response_parser import ResponseParser
from .patch_engine import PatchEngine

__all__ = ["ResponseParser", "PatchEngine"]
