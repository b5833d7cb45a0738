"""Project-specific exception types."""

from __future__ import annotations


class PBMachineError(RuntimeError):
    """Base error for domain-level pbmachine failures."""


class ValidationError(PBMachineError):
    """Raised before any resource is created when input cannot be used."""


class MissingCredentialError(ValidationError):
    """Raised when provider credentials are required but missing."""


class ImageNotFoundError(ValidationError):
    def __init__(self, image: str, location: str, disk_type: str = ''):
        self.image = image
        self.location = location
        self.disk_type = disk_type
        super().__init__(
            f'The image/alias {image!r} does not exist in {location}'
            + (f' for disk type {disk_type}' if disk_type else '')
            + '.'
        )


class DecodeError(PBMachineError):
    """Raised when a provider payload does not match the expected shape."""


class ProviderRejectedError(PBMachineError):
    """The provider answered a call with an HTTP-level status >= 300."""

    def __init__(self, status_code: int, body: str = '', *, action: str = ''):
        self.status_code = int(status_code)
        self.body = body or ''
        self.action = action
        prefix = f'{action} failed' if action else 'Provider request failed'
        super().__init__(
            f'{prefix} (status={self.status_code}): {self.body}'.strip()
        )


class ResourceNotFoundError(ProviderRejectedError):
    pass


class AuthenticationError(ProviderRejectedError):
    def __init__(self, body: str = '', *, action: str = ''):
        super().__init__(401, body, action=action)

    def __str__(self) -> str:
        return 'Unauthorized. Either user name or password are incorrect.'


class QueryError(PBMachineError):
    """A status query failed for a reason other than authentication."""


class JobFailedError(PBMachineError):
    def __init__(self, job: str, message: str = ''):
        self.job = job
        self.message = message or 'request failed without a message'
        super().__init__(f'Job {job} failed: {self.message}')


class PollTimeoutError(PBMachineError):
    def __init__(self, job: str, attempts: int):
        self.job = job
        self.attempts = attempts
        super().__init__(
            f'Timeout has expired waiting for job {job} after {attempts} polls.'
        )


class RollbackError(PBMachineError):
    """Rollback after a failed create did not complete.

    ``cause`` is the error that triggered the rollback and ``rollback_cause``
    the error raised while deleting the partially created resources.
    """

    def __init__(self, cause: BaseException, rollback_cause: BaseException):
        self.cause = cause
        self.rollback_cause = rollback_cause
        super().__init__(
            f'Rollback failed: {rollback_cause} '
            f'(rollback was triggered by: {cause})'
        )


class NotRunningError(PBMachineError):
    """Raised when an operation requires a running machine."""


class SSHKeyError(PBMachineError):
    def __init__(self, key_path: str, reason: str):
        self.key_path = key_path
        self.reason = reason
        super().__init__(f'Could not create SSH key {key_path}: {reason}')
