"""Credential profile resolution and validation.

This module provides:
- ProfileSource: Where a resolved profile name came from
- ProfileResolution: Result of resolving which profile to use
- resolve_profile: Explicit flag -> AWS_PROFILE -> default credential chain
- ProfileValidator: TTL-cached check against the locally configured profiles
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_CACHE_TTL = 300.0  # seconds


class ProfileSource(Enum):
    """Origin of a profile resolution."""

    EXPLICIT = "explicit"  # --profile flag
    ENVIRONMENT = "environment"  # AWS_PROFILE
    DEFAULT_CHAIN = "default_chain"


@dataclass(frozen=True)
class ProfileResolution:
    """Resolved credential profile.

    A profile_name of None means the default credential chain
    (environment keys, shared credentials file, instance metadata).
    """

    profile_name: str | None
    source: ProfileSource
    region: str | None = None

    @property
    def uses_default_chain(self) -> bool:
        return self.profile_name is None


def resolve_profile(
    explicit: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ProfileResolution:
    """Decide which credential profile to use.

    Priority order: explicit argument, then the AWS_PROFILE environment
    variable, then the default credential chain. The region always comes
    from AWS_REGION when set.

    Args:
        explicit: Profile name given on the command line.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        ProfileResolution describing the choice.
    """
    env = os.environ if environ is None else environ
    region = env.get("AWS_REGION") or None

    if explicit:
        logger.debug(f"Using explicit profile: {explicit}")
        return ProfileResolution(explicit, ProfileSource.EXPLICIT, region)

    env_profile = env.get("AWS_PROFILE")
    if env_profile:
        logger.debug(f"Using profile from AWS_PROFILE: {env_profile}")
        return ProfileResolution(env_profile, ProfileSource.ENVIRONMENT, region)

    logger.debug("Using default credential chain")
    return ProfileResolution(None, ProfileSource.DEFAULT_CHAIN, region)


def _boto3_profiles() -> list[str]:
    import boto3

    return list(boto3.session.Session().available_profiles)


class ProfileValidator:
    """Checks profile names against the locally configured profiles.

    Reading ~/.aws/config and ~/.aws/credentials is comparatively slow, so the
    profile list is cached for ``ttl`` seconds. Thread-safe.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_PROFILE_CACHE_TTL,
        list_profiles: Callable[[], list[str]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the validator.

        Args:
            ttl: Seconds a fetched profile list stays valid.
            list_profiles: Source of profile names (defaults to boto3).
            clock: Monotonic clock, injectable for tests.
        """
        self._ttl = ttl
        self._list_profiles = list_profiles or _boto3_profiles
        self._clock = clock
        self._lock = threading.Lock()
        self._profiles: list[str] | None = None
        self._fetched_at = 0.0
        self._hits = 0
        self._misses = 0

    def available_profiles(self) -> list[str]:
        """Return configured profile names, from cache when fresh."""
        with self._lock:
            now = self._clock()
            if self._profiles is not None and now - self._fetched_at < self._ttl:
                self._hits += 1
                return list(self._profiles)

            self._misses += 1
            logger.debug("Profile cache miss, reading configured profiles")
            self._profiles = sorted(self._list_profiles())
            self._fetched_at = now
            logger.debug(f"Cached {len(self._profiles)} available profiles")
            return list(self._profiles)

    def is_valid(self, profile_name: str) -> bool:
        """Whether a profile with this name is configured."""
        return profile_name in self.available_profiles()

    def clear(self) -> None:
        """Drop the cached profile list."""
        with self._lock:
            self._profiles = None
            self._fetched_at = 0.0

    def statistics(self) -> dict[str, str]:
        """Cache statistics, keyed with a ``profile_cache_`` prefix."""
        with self._lock:
            cached = self._profiles is not None and self._clock() - self._fetched_at < self._ttl
            return {
                "profile_cache_hits": str(self._hits),
                "profile_cache_misses": str(self._misses),
                "profile_cache_valid": str(cached).lower(),
                "profile_cache_ttl": f"{self._ttl:g}",
            }
