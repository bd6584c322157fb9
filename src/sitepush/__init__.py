"""sitepush - Concurrent static site deployment to S3-compatible storage."""

__version__ = "0.1.0"
