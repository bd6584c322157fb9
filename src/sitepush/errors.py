"""Exception hierarchy for sitepush.

This module provides:
- SitePushError: Base class for every error raised by the package
- ConfigurationError and subclasses: Fail-fast errors raised before network activity
- UploadError and subclasses: Terminal failures of remote upload operations
- ObjectNotFoundError: "Object absent" signal from head-object
- ClientManagerClosedError: Use of a client manager after shutdown
"""

from __future__ import annotations

from collections.abc import Sequence


class SitePushError(Exception):
    """Base exception for sitepush errors."""


class ConfigurationError(SitePushError):
    """Invalid input detected before any upload work starts."""


class InvalidSitesError(ConfigurationError):
    """One or more requested site names are unknown."""

    def __init__(self, invalid: Sequence[str], valid: Sequence[str]) -> None:
        self.invalid = list(invalid)
        self.valid = list(valid)
        super().__init__(
            f"Invalid site names: {', '.join(self.invalid)}. "
            f"Valid sites: {', '.join(self.valid)}"
        )


class DuplicateSitesError(ConfigurationError):
    """The same site name was requested more than once."""

    def __init__(self, sites: Sequence[str]) -> None:
        self.sites = list(sites)
        super().__init__(f"Duplicate sites detected in list: {', '.join(self.sites)}")


class SiteDirectoryNotFoundError(ConfigurationError):
    """The local directory for a site does not exist."""

    def __init__(self, site_name: str, path: object) -> None:
        self.site_name = site_name
        self.path = path
        super().__init__(f"Site directory not found for {site_name}: {path}")


class DirectoryNotFoundError(ConfigurationError):
    """A directory passed to upload_directory does not exist."""

    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(f"Directory not found: {path}")


class DeploymentValidationError(ConfigurationError):
    """A deployment configuration failed validation."""

    def __init__(self, environment: str, problems: Sequence[str]) -> None:
        self.environment = environment
        self.problems = list(problems)
        super().__init__(
            f"Deployment validation failed for {environment}: {'; '.join(self.problems)}"
        )


class UploadError(SitePushError):
    """Failed to upload an object."""


class UploadOperationError(UploadError):
    """A retried remote operation exhausted its attempt budget.

    Attributes:
        operation: Name of the remote operation (e.g. "put_object").
        key: Object key the operation targeted.
        attempts: Number of attempts made.
    """

    def __init__(self, operation: str, key: str, attempts: int, cause: BaseException) -> None:
        self.operation = operation
        self.key = key
        self.attempts = attempts
        super().__init__(
            f"{operation} failed for {key} after {attempts} attempt(s): {cause}"
        )


class MultipartUploadError(UploadError):
    """The multipart sequence could not be carried out."""


class ObjectNotFoundError(SitePushError):
    """The requested object does not exist in the bucket."""

    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"Object not found: s3://{bucket}/{key}")


class ClientManagerClosedError(SitePushError):
    """A client was requested from a manager that has been shut down."""
