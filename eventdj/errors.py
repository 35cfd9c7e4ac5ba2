"""
Error taxonomy for eventdj.

Collaborator failures are raised by the vendor clients and caught at the
call site by the orchestration loops, which turn them into "no state
change". None of these escape a running loop.
"""


class EventDJError(Exception):
    """Base class for all eventdj errors."""


class AnalysisError(EventDJError):
    """Vision analysis failed (timeout, quota, unparseable reply)."""


class SynthesisError(EventDJError):
    """Speech synthesis or speech playback failed."""


class RecognitionError(EventDJError):
    """Face recognition collaborator failed."""


class CatalogError(EventDJError):
    """Track catalog provider failed."""


class SelectionExhausted(EventDJError):
    """No track satisfies any selection tier (the catalog is empty)."""

