# halftone_errors.py
# Typed failures raised by the halftone pipeline and storage layer.
# Each error knows its wire code and HTTP status so the service can map it
# without inspecting messages.

from typing import Any, Dict, Optional


class HalftoneError(Exception):
    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}


class InvalidImageError(HalftoneError):
    """Bytes could not be decoded, or the format is not PNG/JPEG/WEBP."""

    code = "BAD_IMAGE"
    status_code = 400


class TooLargeError(HalftoneError):
    code = "TOO_LARGE"
    status_code = 413


class SettingsTooHeavyError(HalftoneError):
    """The requested cell size / width combination would produce too many cells."""

    code = "SETTINGS_TOO_HEAVY"
    status_code = 422


class FullyTransparentError(HalftoneError):
    """No pixel is above the alpha threshold, so there is nothing to screen."""

    code = "FULLY_TRANSPARENT"
    status_code = 422


class BusyError(HalftoneError):
    code = "BUSY"
    status_code = 429


class ObjectNotFoundError(HalftoneError):
    code = "NOT_FOUND"
    status_code = 404


class StorageNotConfiguredError(HalftoneError):
    code = "STORAGE_UNAVAILABLE"
    status_code = 503


class InternalRenderError(HalftoneError):
    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str = "Failed to process halftone"):
        super().__init__(message)
