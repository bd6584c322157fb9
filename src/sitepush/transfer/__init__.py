"""Transfer module - Retry policy, exclusion patterns and the site uploader."""

from sitepush.transfer.exclusion import ExcludePatterns, parse_exclude_patterns
from sitepush.transfer.retry import backoff_delays, with_retry
from sitepush.transfer.uploader import SiteUploader, iter_site_files

__all__ = [
    "ExcludePatterns",
    "SiteUploader",
    "backoff_delays",
    "iter_site_files",
    "parse_exclude_patterns",
    "with_retry",
]
