"""
Custom exceptions for COMPAS Navigator.

These exceptions are intentionally simple and descriptive.
They are used across:

  - core/api/         (collaborator failures)
  - core/compas/      (stage machine, objective guard)
  - runtime/          (sessions, artifacts, exports, HTTP mapping)

Placing them at the project root (exceptions/) avoids circular imports
and keeps exception types consistent across modules.
"""


class SessionNotFound(Exception):
    """
    Raised when a session identifier is unknown (never created, deleted,
    or evicted). Surfaced to the caller as-is; retrying will not help.
    """

    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class CollaboratorError(Exception):
    """
    Base class for failures of an external collaborator (completion or
    analysis model).
    """


class CollaboratorUnavailable(CollaboratorError):
    """
    Raised when the external completion/analysis call fails (network,
    authentication, rate limit, provider error).
    """


class CollaboratorTimeout(CollaboratorUnavailable):
    """Raised when the external call did not answer in time."""


class CollaboratorMalformedOutput(CollaboratorError):
    """
    Raised when a collaborator answered, but the output cannot be used:
    empty completion, non-JSON analysis, or a schema violation.

    The raw text (if any) is kept for logging.
    """

    def __init__(self, message, raw_output=None):
        self.raw_output = raw_output
        super().__init__(message)


class InvalidTransition(Exception):
    """
    Raised when an explicit stage override targets the current stage or a
    stage behind it. Regular advancement past the terminal stage is a no-op
    and never raises this.
    """

    def __init__(self, current_stage, target_stage):
        self.current_stage = current_stage
        self.target_stage = target_stage
        msg = f"Cannot move session from '{current_stage}' to '{target_stage}'."
        super().__init__(msg)


class SolutionStatementRejected(Exception):
    """
    Raised while defining the objective when the user describes a solution
    ("We need a chatbot") instead of a problem.

    The exception carries suggestions for rephrasing.
    """

    def __init__(self, statement, suggestions=None):
        self.statement = statement
        self.suggestions = list(suggestions or [])
        super().__init__("Solution statement detected")


class ArtifactValidationError(Exception):
    """
    Raised when an artifact descriptor fails validation (size, type,
    sensitivity). The list of problems is kept in `errors`.
    """

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("Artifact validation failed: " + "; ".join(self.errors))


class UnsupportedExportFormat(Exception):
    """Raised when a report export is requested in an unknown format."""

    def __init__(self, export_format, supported):
        self.export_format = export_format
        self.supported = list(supported)
        msg = (
            f"Unsupported export format: {export_format}. "
            f"Supported: {', '.join(self.supported)}"
        )
        super().__init__(msg)
