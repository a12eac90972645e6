"""Error taxonomy shared by the loader, store, gateway and API."""


class TrainerError(Exception):
    """Base class for every error the trainer raises on purpose."""

    status_code = 500

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.cause is not None:
            body["error"] = str(self.cause)
        return body


class MalformedDocumentError(TrainerError):
    """The exam document is not valid JSON or violates the exam schema."""

    status_code = 400


class FileReadError(TrainerError):
    status_code = 400


class FetchError(TrainerError):
    """HTTP download of an exam document failed."""

    status_code = 502

    def __init__(self, message: str, cause: Exception | None = None, status: int | None = None):
        super().__init__(message, cause)
        self.status = status


class MissingCredentialError(TrainerError):
    """No Gemini API key is configured, so AI features are unavailable."""

    status_code = 503


class RateLimitedError(TrainerError):
    status_code = 429


class GatewayTimeoutError(TrainerError):
    status_code = 504


class TransportError(TrainerError):
    status_code = 502


class NotFoundError(TrainerError):
    status_code = 404


class PayloadValidationError(TrainerError):
    status_code = 400
