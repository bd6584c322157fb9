"""Deployment configuration: environments, configuration file and site catalog.

This module provides:
- Environment: The deployment environments (dev, staging, prod, test)
- DeploymentConfiguration: Where and how one environment deploys
- ConfigurationFile: Parsed ``sitepush.json`` / ``.sitepush.json``
- resolve_deployment: Pick the configuration for a run
- SiteCatalog: Known site names and their local directories
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from sitepush.core.config import DEFAULT_BUCKET, DEFAULT_KEY_PREFIX, UploadConfiguration
from sitepush.errors import (
    ConfigurationError,
    DeploymentValidationError,
    DuplicateSitesError,
    InvalidSitesError,
    SiteDirectoryNotFoundError,
)

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ("sitepush.json", ".sitepush.json")
SUPPORTED_CONFIG_VERSIONS = ("1.0",)
DEFAULT_SITES_ROOT = Path("Public")

STANDARD_REGIONS = frozenset({
    "us-east-1", "us-east-2", "us-west-1", "us-west-2",
    "eu-west-1", "eu-central-1", "ap-southeast-1", "ap-northeast-1",
})

_ACCOUNT_ID_RE = re.compile(r"^[0-9]{12}$")
_REGION_RE = re.compile(r"^[a-z0-9-]+$")
_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


class Environment(Enum):
    """Deployment environments."""

    DEVELOPMENT = "dev"
    STAGING = "staging"
    PRODUCTION = "prod"
    TESTING = "test"

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def requires_approval(self) -> bool:
        return self is Environment.PRODUCTION

    @classmethod
    def parse(cls, value: str | None) -> Environment | None:
        """Parse "dev", "development", "prod", "production", etc. None if unknown."""
        if not value:
            return None
        normalized = value.strip().lower()
        aliases = {
            "development": cls.DEVELOPMENT,
            "production": cls.PRODUCTION,
            "testing": cls.TESTING,
            "stage": cls.STAGING,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            return None

    @classmethod
    def infer_from_profile(cls, profile: str) -> Environment | None:
        """Guess the environment from a credential profile name."""
        lowered = profile.lower()
        for marker, environment in (
            ("prod", cls.PRODUCTION),
            ("stag", cls.STAGING),
            ("test", cls.TESTING),
            ("dev", cls.DEVELOPMENT),
        ):
            if marker in lowered:
                return environment
        return None


@dataclass(frozen=True)
class DeploymentConfiguration:
    """Settings for deploying to one environment.

    Attributes:
        environment: Target environment.
        upload: Bucket, prefix, region, retry and cache settings.
        profile_name: Credential profile (None for the default chain).
        account_id: Expected 12-digit account id, if known.
        requires_security_validation: Whether the environment demands validation.
        cloudfront_distribution_id: Distribution fronting the bucket, if any.
        tags: Free-form labels.
    """

    environment: Environment
    upload: UploadConfiguration
    profile_name: str | None = None
    account_id: str | None = None
    requires_security_validation: bool = False
    cloudfront_distribution_id: str | None = None
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def region(self) -> str:
        return self.upload.region

    @property
    def description(self) -> str:
        """Short summary, e.g. "Production (prod@us-west-2 -> s3://bucket/sites)"."""
        return (
            f"{self.environment.display_name} "
            f"({self.profile_name or 'default'}@{self.region} -> "
            f"s3://{self.upload.bucket_name}/{self.upload.key_prefix})"
        )

    def with_profile(self, profile_name: str | None) -> DeploymentConfiguration:
        return DeploymentConfiguration(
            environment=self.environment,
            upload=self.upload,
            profile_name=profile_name,
            account_id=self.account_id,
            requires_security_validation=self.requires_security_validation,
            cloudfront_distribution_id=self.cloudfront_distribution_id,
            tags=dict(self.tags),
        )

    def with_upload(self, **changes: Any) -> DeploymentConfiguration:
        return DeploymentConfiguration(
            environment=self.environment,
            upload=self.upload.with_overrides(**changes),
            profile_name=self.profile_name,
            account_id=self.account_id,
            requires_security_validation=self.requires_security_validation,
            cloudfront_distribution_id=self.cloudfront_distribution_id,
            tags=dict(self.tags),
        )

    def validate(self) -> None:
        """Check the configuration before any upload starts.

        Raises:
            DeploymentValidationError: Listing every problem found.
        """
        problems: list[str] = []
        if self.account_id is not None and not _ACCOUNT_ID_RE.match(self.account_id):
            problems.append(f"Invalid account ID format: {self.account_id}")
        if not _REGION_RE.match(self.region):
            problems.append(f"Invalid region: {self.region}")
        elif self.region not in STANDARD_REGIONS:
            logger.warning(f"Non-standard region: {self.region}")
        if not _BUCKET_RE.match(self.upload.bucket_name):
            problems.append(f"Invalid bucket name: {self.upload.bucket_name}")
        if self.cloudfront_distribution_id is not None and (
            not self.cloudfront_distribution_id.startswith("E")
            or len(self.cloudfront_distribution_id) < 10
        ):
            problems.append(
                f"Invalid CloudFront distribution ID format: {self.cloudfront_distribution_id}"
            )
        if self.environment is Environment.PRODUCTION:
            if not self.requires_security_validation:
                problems.append("Production environment must require security validation")
            profile = self.profile_name or ""
            if "prod" not in profile:
                logger.warning(
                    f"Production environment using non-production profile: {self.profile_name or 'default'}"
                )

        if problems:
            raise DeploymentValidationError(self.environment.value, problems)


PREDEFINED_CONFIGURATIONS: dict[Environment, DeploymentConfiguration] = {
    Environment.PRODUCTION: DeploymentConfiguration(
        environment=Environment.PRODUCTION,
        upload=UploadConfiguration(
            bucket_name=DEFAULT_BUCKET,
            key_prefix=DEFAULT_KEY_PREFIX,
            region="us-west-2",
            max_retries=5,
            default_cache_duration=86400,
        ),
        profile_name="production",
        requires_security_validation=True,
        tags={"Environment": "Production"},
    ),
    Environment.STAGING: DeploymentConfiguration(
        environment=Environment.STAGING,
        upload=UploadConfiguration(
            bucket_name="sitepush-staging",
            key_prefix=DEFAULT_KEY_PREFIX,
            region="us-west-2",
            max_retries=3,
            default_cache_duration=3600,
        ),
        profile_name="staging",
        tags={"Environment": "Staging"},
    ),
    Environment.DEVELOPMENT: DeploymentConfiguration(
        environment=Environment.DEVELOPMENT,
        upload=UploadConfiguration(
            bucket_name="sitepush-dev",
            key_prefix=DEFAULT_KEY_PREFIX,
            region="us-west-2",
            max_retries=2,
            default_cache_duration=300,
            html_cache_control="no-cache",
            asset_cache_control="public, max-age=3600",
        ),
        profile_name="development",
        tags={"Environment": "Development"},
    ),
    Environment.TESTING: DeploymentConfiguration(
        environment=Environment.TESTING,
        upload=UploadConfiguration(
            bucket_name="sitepush-test",
            key_prefix=f"{DEFAULT_KEY_PREFIX}-test",
            region="us-east-1",
            max_retries=1,
            default_cache_duration=60,
            html_cache_control="no-cache",
            asset_cache_control="no-cache",
        ),
        profile_name="testing",
        tags={"Environment": "Testing", "AutoDelete": "true"},
    ),
}


def configuration_for(environment: Environment) -> DeploymentConfiguration:
    """Return the predefined configuration of an environment."""
    return PREDEFINED_CONFIGURATIONS[environment]


# Configuration file


@dataclass(frozen=True)
class EnvironmentSettings:
    """One entry of the ``environments`` section."""

    bucket: str
    region: str | None = None
    profile: str | None = None
    key_prefix: str | None = None
    cache_duration: int | None = None
    account_id: str | None = None
    require_approval: bool | None = None
    cloudfront_distribution: str | None = None
    tags: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SiteSettings:
    """One entry of the ``sites`` section: per-site overrides."""

    key_prefix: str | None = None
    environments: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class GlobalSettings:
    """The ``global`` section."""

    default_key_prefix: str | None = None
    default_region: str | None = None
    default_cache_duration: int | None = None
    max_retries: int | None = None
    retry_base_delay: float | None = None
    sites_root: str | None = None


@dataclass(frozen=True)
class ConfigurationFile:
    """Parsed deployment configuration file.

    Example::

        {
          "version": "1.0",
          "default_environment": "staging",
          "environments": {
            "staging": {"bucket": "my-staging", "region": "us-west-2", "profile": "staging"}
          },
          "sites": {"blog": {"key_prefix": "blog-sites"}},
          "global": {"retry_settings": {"max_retries": 4, "base_delay": 0.5}}
        }
    """

    environments: Mapping[Environment, EnvironmentSettings]
    sites: Mapping[str, SiteSettings] = field(default_factory=dict)
    global_settings: GlobalSettings = field(default_factory=GlobalSettings)
    default_environment: Environment | None = None
    version: str = "1.0"
    path: Path | None = None

    def deployment_configuration(
        self, environment: Environment, site_name: str | None = None
    ) -> DeploymentConfiguration | None:
        """Build the configuration for an environment, applying site overrides.

        Returns:
            None if the file does not define the environment.
        """
        settings = self.environments.get(environment)
        if settings is None:
            return None

        base = configuration_for(environment)
        glob = self.global_settings
        upload_changes: dict[str, Any] = {
            "bucket_name": settings.bucket,
            "region": settings.region or glob.default_region or base.upload.region,
            "key_prefix": (
                settings.key_prefix
                if settings.key_prefix is not None
                else glob.default_key_prefix
                if glob.default_key_prefix is not None
                else base.upload.key_prefix
            ),
        }
        cache_duration = settings.cache_duration or glob.default_cache_duration
        if cache_duration is not None:
            upload_changes["default_cache_duration"] = cache_duration
        if glob.max_retries is not None:
            upload_changes["max_retries"] = glob.max_retries
        if glob.retry_base_delay is not None:
            upload_changes["retry_base_delay"] = glob.retry_base_delay
        profile = settings.profile or base.profile_name

        site = self.sites.get(site_name) if site_name else None
        if site is not None:
            if site.key_prefix is not None:
                upload_changes["key_prefix"] = site.key_prefix
            overrides = site.environments.get(environment.value, {})
            if overrides.get("bucket"):
                upload_changes["bucket_name"] = overrides["bucket"]
            if overrides.get("region"):
                upload_changes["region"] = overrides["region"]
            if overrides.get("cache_duration") is not None:
                upload_changes["default_cache_duration"] = int(overrides["cache_duration"])
            if overrides.get("profile"):
                profile = overrides["profile"]

        requires_validation = (
            settings.require_approval
            if settings.require_approval is not None
            else base.requires_security_validation
        )
        return DeploymentConfiguration(
            environment=environment,
            upload=base.upload.with_overrides(**upload_changes),
            profile_name=profile,
            account_id=settings.account_id,
            requires_security_validation=requires_validation,
            cloudfront_distribution_id=settings.cloudfront_distribution,
            tags={**base.tags, **settings.tags},
        )


def find_config_file(directory: Path | str | None = None) -> Path | None:
    """Return the first configuration file present in a directory."""
    base = Path(directory) if directory is not None else Path.cwd()
    for name in CONFIG_FILE_NAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def _parse_environment_key(name: str, source: Path | str) -> Environment:
    environment = Environment.parse(name)
    if environment is None:
        valid = ", ".join(e.value for e in Environment)
        raise ConfigurationError(f"Unknown environment '{name}' in {source}. Valid environments: {valid}")
    return environment


def parse_config(data: Mapping[str, Any], source: Path | str = "<config>") -> ConfigurationFile:
    """Validate and convert decoded JSON into a ConfigurationFile.

    Raises:
        ConfigurationError: If the structure or any value is invalid.
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration in {source} must be a JSON object")

    version = str(data.get("version", "1.0"))
    if version not in SUPPORTED_CONFIG_VERSIONS:
        raise ConfigurationError(
            f"Unsupported configuration version '{version}' in {source}. "
            f"Supported versions: {', '.join(SUPPORTED_CONFIG_VERSIONS)}"
        )

    environments: dict[Environment, EnvironmentSettings] = {}
    for name, raw in dict(data.get("environments") or {}).items():
        environment = _parse_environment_key(name, source)
        if not isinstance(raw, Mapping) or not raw.get("bucket"):
            raise ConfigurationError(f"Missing required field 'bucket' in environment '{name}' ({source})")
        settings = EnvironmentSettings(
            bucket=str(raw["bucket"]),
            region=raw.get("region"),
            profile=raw.get("profile"),
            key_prefix=raw.get("key_prefix"),
            cache_duration=raw.get("cache_duration"),
            account_id=raw.get("account_id"),
            require_approval=raw.get("require_approval"),
            cloudfront_distribution=raw.get("cloudfront_distribution"),
            tags=dict(raw.get("tags") or {}),
        )
        if settings.account_id is not None and not _ACCOUNT_ID_RE.match(str(settings.account_id)):
            raise ConfigurationError(
                f"Invalid account ID '{settings.account_id}' in environment '{name}'. "
                "Account ID must be 12 digits."
            )
        if settings.region is not None and not _REGION_RE.match(settings.region):
            raise ConfigurationError(f"Invalid region '{settings.region}' in environment '{name}'")
        if not _BUCKET_RE.match(settings.bucket):
            raise ConfigurationError(f"Invalid bucket name '{settings.bucket}' in environment '{name}'")
        environments[environment] = settings

    sites = {
        str(name): SiteSettings(
            key_prefix=(raw or {}).get("key_prefix"),
            environments={
                env_name: dict(overrides)
                for env_name, overrides in dict((raw or {}).get("environments") or {}).items()
            },
        )
        for name, raw in dict(data.get("sites") or {}).items()
    }

    raw_global = dict(data.get("global") or {})
    retry = dict(raw_global.get("retry_settings") or {})
    global_settings = GlobalSettings(
        default_key_prefix=raw_global.get("default_key_prefix"),
        default_region=raw_global.get("default_region"),
        default_cache_duration=raw_global.get("default_cache_duration"),
        max_retries=retry.get("max_retries"),
        retry_base_delay=retry.get("base_delay"),
        sites_root=raw_global.get("sites_root"),
    )

    default_environment = None
    if data.get("default_environment"):
        default_environment = _parse_environment_key(data["default_environment"], source)
        if default_environment not in environments:
            available = ", ".join(e.value for e in environments) or "none"
            raise ConfigurationError(
                f"Default environment '{data['default_environment']}' not found. "
                f"Available environments: {available}"
            )

    return ConfigurationFile(
        environments=environments,
        sites=sites,
        global_settings=global_settings,
        default_environment=default_environment,
        version=version,
        path=source if isinstance(source, Path) else None,
    )


def load_config_file(path: Path | str) -> ConfigurationFile:
    """Load and validate a JSON configuration file.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to read configuration file at {path}: {e}") from e
    config = parse_config(data, path)
    logger.debug(f"Loaded configuration file {path} with {len(config.environments)} environment(s)")
    return config


def load_config_from_directory(directory: Path | str | None = None) -> ConfigurationFile | None:
    """Load the configuration file of a directory, if there is one."""
    path = find_config_file(directory)
    if path is None:
        return None
    return load_config_file(path)


def resolve_deployment(
    explicit_environment: str | None = None,
    profile: str | None = None,
    environ: Mapping[str, str] | None = None,
    site_name: str | None = None,
    config_file: ConfigurationFile | None = None,
) -> DeploymentConfiguration:
    """Resolve the deployment configuration for a run.

    Priority order:
    1. The configuration file, for the explicit environment, DEPLOYMENT_ENV or
       the file's default environment
    2. The explicit environment
    3. The DEPLOYMENT_ENV environment variable
    4. An environment inferred from the profile name (prod/stag/test/dev)
    5. Development

    An explicit profile always overrides the configured one. For predefined
    configurations AWS_REGION overrides the region.

    Args:
        explicit_environment: Environment name from the command line.
        profile: Credential profile from the command line.
        environ: Environment variables (defaults to os.environ).
        site_name: Site the configuration is for (selects site overrides).
        config_file: Parsed configuration file, if any.

    Raises:
        ConfigurationError: If explicit_environment is not a known environment.
    """
    env = os.environ if environ is None else environ

    explicit = None
    if explicit_environment:
        explicit = Environment.parse(explicit_environment)
        if explicit is None:
            valid = ", ".join(e.value for e in Environment)
            raise ConfigurationError(
                f"Unknown environment '{explicit_environment}'. Valid environments: {valid}"
            )

    from_variable = Environment.parse(env.get("DEPLOYMENT_ENV"))
    if env.get("DEPLOYMENT_ENV") and from_variable is None:
        logger.warning(f"Ignoring unknown DEPLOYMENT_ENV value: {env['DEPLOYMENT_ENV']}")

    if config_file is not None:
        target = explicit or from_variable or config_file.default_environment
        if target is not None:
            config = config_file.deployment_configuration(target, site_name)
            if config is not None:
                logger.info(f"Using configuration from file for environment: {target.value}")
                return config.with_profile(profile) if profile else config
            logger.warning(f"Environment '{target.value}' not found in configuration file")

    if explicit is not None:
        environment, source = explicit, "explicit argument"
    elif from_variable is not None:
        environment, source = from_variable, "DEPLOYMENT_ENV"
    elif profile and Environment.infer_from_profile(profile) is not None:
        environment = Environment.infer_from_profile(profile) or Environment.DEVELOPMENT
        source = f"profile name '{profile}'"
    else:
        environment, source = Environment.DEVELOPMENT, "default"

    config = configuration_for(environment)
    region = env.get("AWS_REGION")
    if region and region != config.region:
        config = config.with_upload(region=region)
    if profile:
        config = config.with_profile(profile)

    logger.info(f"Deployment configuration resolved via {source}: {config.description}")
    return config


# Site catalog


class SiteCatalog:
    """Known sites: subdirectories of the sites root plus configured names.

    Usage:
        catalog = SiteCatalog(Path("Public"))
        catalog.validate(["blog", "docs"])
        catalog.site_directory("blog")
    """

    def __init__(self, sites_root: Path | str = DEFAULT_SITES_ROOT, configured_sites: Iterable[str] = ()) -> None:
        self._root = Path(sites_root)
        self._configured = [str(site) for site in configured_sites]

    @property
    def sites_root(self) -> Path:
        return self._root

    def available_sites(self) -> list[str]:
        """Sorted names of every known site."""
        names = set(self._configured)
        if self._root.is_dir():
            names.update(
                entry.name
                for entry in self._root.iterdir()
                if entry.is_dir() and not entry.name.startswith(".")
            )
        return sorted(names)

    def validate(self, site_names: Iterable[str]) -> list[str]:
        """Check that every name is known and listed once.

        Returns:
            The names, as a list.

        Raises:
            InvalidSitesError: If any name is unknown.
            DuplicateSitesError: If any name appears more than once.
        """
        names = list(site_names)
        valid = self.available_sites()
        invalid = [name for name in names if name not in valid]
        if invalid:
            raise InvalidSitesError(invalid, valid)
        duplicates = [name for name, count in Counter(names).items() if count > 1]
        if duplicates:
            raise DuplicateSitesError(duplicates)
        return names

    def site_directory(self, site_name: str) -> Path:
        """Return the local directory of a site.

        Raises:
            SiteDirectoryNotFoundError: If the directory does not exist.
        """
        directory = self._root / site_name
        if not directory.is_dir():
            raise SiteDirectoryNotFoundError(site_name, directory)
        return directory

    def select(
        self,
        sites: Iterable[str] | None = None,
        all_sites: bool = False,
        exclude: Iterable[str] = (),
    ) -> list[str]:
        """Choose the sites for a batch run.

        With ``all_sites`` every available site minus ``exclude``; otherwise
        the given names in order.
        """
        if all_sites:
            excluded = set(exclude)
            return [name for name in self.available_sites() if name not in excluded]
        return list(sites or [])


def sites_root_from(
    explicit: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
    config_file: ConfigurationFile | None = None,
) -> Path:
    """Resolve the sites root: explicit, SITEPUSH_SITES_ROOT, config file, ./Public."""
    env = os.environ if environ is None else environ
    if explicit:
        return Path(explicit)
    if env.get("SITEPUSH_SITES_ROOT"):
        return Path(env["SITEPUSH_SITES_ROOT"])
    if config_file is not None and config_file.global_settings.sites_root:
        return Path(config_file.global_settings.sites_root)
    return DEFAULT_SITES_ROOT
