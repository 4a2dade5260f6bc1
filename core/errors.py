from core.types import SpeechErrorKind


class AssistantError(Exception):
    """Base class for failures recovered inside the assistant."""


class InputRejected(AssistantError):
    def __init__(self, message: str = "Empty input"):
        super().__init__(message)


class ExportEmpty(AssistantError):
    def __init__(self, message: str = "No data available for export."):
        super().__init__(message)


class SpeechCaptureError(AssistantError):
    def __init__(self, kind: SpeechErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind


# --- Calculation ---


class CalculationError(AssistantError):
    pass


class NoExpressionFound(CalculationError):
    pass


class InvalidResult(CalculationError):
    pass


class MalformedExpression(CalculationError):
    def __init__(self, message: str, position: int | None = None):
        super().__init__(message)
        self.position = position


# --- Remote completion ---


class RemoteCompletionError(AssistantError):
    pass


class RemoteNetworkError(RemoteCompletionError):
    pass


class RemoteRejectedError(RemoteCompletionError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RemoteMalformedResponseError(RemoteCompletionError):
    pass
