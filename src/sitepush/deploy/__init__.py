"""Deploy module - Environments, configuration file and site catalog."""

from sitepush.deploy.config import (
    CONFIG_FILE_NAMES,
    DEFAULT_SITES_ROOT,
    PREDEFINED_CONFIGURATIONS,
    ConfigurationFile,
    DeploymentConfiguration,
    Environment,
    SiteCatalog,
    configuration_for,
    find_config_file,
    load_config_file,
    load_config_from_directory,
    parse_config,
    resolve_deployment,
    sites_root_from,
)

__all__ = [
    "CONFIG_FILE_NAMES",
    "DEFAULT_SITES_ROOT",
    "PREDEFINED_CONFIGURATIONS",
    "ConfigurationFile",
    "DeploymentConfiguration",
    "Environment",
    "SiteCatalog",
    "configuration_for",
    "find_config_file",
    "load_config_file",
    "load_config_from_directory",
    "parse_config",
    "resolve_deployment",
    "sites_root_from",
]
