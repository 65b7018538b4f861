"""Exceptions raised by the workspace access layer."""


class ViagenError(Exception):
    """Base error carrying the HTTP status code it maps to."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(ViagenError):
    """Caller supplied a missing or malformed parameter."""

    status_code = 400


class AbsolutePathError(InvalidRequestError):
    """Caller supplied an absolute path where a relative one is required."""

    def __init__(self, path: str):
        super().__init__("Absolute paths not allowed")
        self.path = path


class PathNotAllowedError(ViagenError):
    """Requested path is outside every editable pattern."""

    status_code = 403

    def __init__(self, path: str):
        super().__init__("Path not in editable list")
        self.path = path


class EditableFileNotFoundError(ViagenError):
    """Allowed path could not be read."""

    status_code = 404

    def __init__(self, path: str):
        super().__init__("File not found")
        self.path = path


class EditableFileWriteError(ViagenError):
    """Allowed path could not be written; carries the OS message."""

    status_code = 500

    def __init__(self, path: str, reason: str):
        super().__init__(reason)
        self.path = path
