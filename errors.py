"""
=============================================================================
ERRORS.PY — Error Taxonomy
=============================================================================
Every failure the domain layer can report. Each class carries the HTTP
status the API answers with; main.py turns them into {"detail": message}.

  ValidationError   → input is well-formed JSON but semantically invalid (422)
  ConflictError     → uniqueness violation: duplicate username/email (409)
  NotFoundError     → referenced record does not exist (404)
  UnauthorizedError → no valid session (401) or not the record owner (403)
  UpstreamError     → the AI provider failed (502); chat routes recover from
                      it locally and never show it to the user
"""


class MindWellError(Exception):
    """Base class for every error raised on purpose by the application."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(MindWellError):
    status_code = 422


class ConflictError(MindWellError):
    status_code = 409


class NotFoundError(MindWellError):
    status_code = 404


class UnauthorizedError(MindWellError):
    status_code = 401

    @classmethod
    def not_owner(cls, what: str = "this record") -> "UnauthorizedError":
        return cls(f"Not authorized to access {what}", status_code=403)


class UpstreamError(MindWellError):
    status_code = 502
