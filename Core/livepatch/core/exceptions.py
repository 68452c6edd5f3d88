class PatchError(RuntimeError):
    """Raised when a source patch cannot be produced or written."""


class PathResolutionError(PatchError):
    """Raised when a source-map file reference cannot be mapped to disk."""


class SelfPatchBlockedError(PathResolutionError):
    """Raised when a resolved path points into the tool's own installation."""


class ModelResponseError(PatchError):
    """Raised when a model returns prose or nothing instead of code."""


class HistoryError(PatchError):
    """Raised when the patch history store cannot satisfy a request."""
