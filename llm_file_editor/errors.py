"""
Error taxonomy — every failure a session can end in.

Each error carries a short ``kind`` used by the CLI for display and by
the session to decide whether a retry is allowed.
"""

from __future__ import annotations


class EditorError(Exception):
    """Base class for all llmedit errors."""

    kind = "EditorError"
    retryable = False

    def describe(self) -> str:
        message = str(self)
        return f"{self.kind}: {message}" if message else self.kind


# ── Provider layer ──

class InvalidModel(EditorError):
    """Requested model is not offered by the provider, or the request is malformed."""

    kind = "InvalidModel"

    def __init__(self, model_id: str, provider_id: str = "", detail: str = ""):
        self.model_id = model_id
        self.provider_id = provider_id
        msg = detail or f"model '{model_id}' is not configured for provider '{provider_id}'"
        super().__init__(msg)


class NoProviderConfigured(EditorError):
    """No credentials (or no configuration at all) for the requested provider."""

    kind = "NoProviderConfigured"

    def __init__(self, provider_id: str, detail: str = ""):
        self.provider_id = provider_id
        super().__init__(detail or f"no credentials configured for provider '{provider_id}'")


class TransportError(EditorError):
    """Network-level failure: timeout, refused or reset connection."""

    kind = "TransportError"
    retryable = True


class ProviderRejected(EditorError):
    """Provider answered, but not with a usable 2xx response."""

    kind = "ProviderRejected"

    def __init__(self, status: int, body_excerpt: str = ""):
        self.status = status
        self.body_excerpt = body_excerpt
        super().__init__(f"HTTP {status}: {body_excerpt}" if body_excerpt else f"HTTP {status}")


class ProviderUnavailable(EditorError):
    """Transport kept failing after every retry."""

    kind = "ProviderUnavailable"

    def __init__(self, attempts: int, last_error: Exception | None = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"provider unreachable after {attempts} attempt(s): {last_error}")


# ── Parsing ──

class UnparseableResponse(EditorError):
    """Model did not return an applicable edit."""

    kind = "UnparseableResponse"


class OverlappingHunks(UnparseableResponse):
    """Two hunks claim the same original lines."""

    kind = "OverlappingHunks"

    def __init__(self, first: tuple[int, int], second: tuple[int, int]):
        self.first = first
        self.second = second
        super().__init__(
            f"hunk lines {first[0]}-{first[1]} overlaps lines {second[0]}-{second[1]}"
        )


class OutOfRangeEdit(EditorError):
    """Hunk references a line outside the original file."""

    kind = "OutOfRangeEdit"

    def __init__(self, line: int, line_count: int | None = None):
        self.line = line
        self.line_count = line_count
        if line_count is None:
            super().__init__(f"line {line} is out of range")
        else:
            super().__init__(f"line {line} is out of range (file has {line_count} lines)")


# ── Files ──

class FileNotFound(EditorError):
    kind = "FileNotFound"


class NotUTF8(EditorError):
    kind = "NotUTF8"


class WriteFailed(EditorError):
    """Writing the patched file failed; the original is untouched."""

    kind = "WriteFailed"

    def __init__(self, path: str, cause: Exception, result=None):
        self.path = path
        self.cause = cause
        self.result = result
        super().__init__(f"could not write {path}: {cause}")


class SessionCancelled(EditorError):
    """User interrupted the session before a proposal was ready."""

    kind = "SessionCancelled"
