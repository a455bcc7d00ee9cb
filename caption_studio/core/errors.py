"""
Exception hierarchy for caption-studio.

Service functions raise these; routers turn them into
{"ok": False, "error": ...} payloads so the UI can show a message and let
the user retry the action.
"""


class CaptionStudioError(Exception):
    """Base exception for all caption-studio errors."""
    pass


class UserInputError(CaptionStudioError):
    """Raised when the request itself is unusable (nothing selected, bad parameters)."""
    pass


class FileOperationError(CaptionStudioError):
    """Raised when a copy/read/write/delete on disk fails."""
    pass


class ThumbnailError(CaptionStudioError):
    """Raised when a preview bitmap cannot be produced for a file."""
    pass


class CaptionApiError(CaptionStudioError):
    """Raised when the vision API cannot be reached or returns an unusable response."""
    pass


class MediaToolError(CaptionStudioError):
    """Raised when ffmpeg/ffprobe is missing or fails.

    The message is short and user-facing; the full tool output is logged.
    """
    pass
