"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

DUMP_FORMATS = ('YAML', 'JSON')


@dataclass
class ExportOptions:
    """Typed view of the settings one export run needs."""

    output_directory: str = '.'
    use_uuid_for_notename: bool = True
    folder_names_as_uuid: bool = True
    dump_format: str = 'YAML'
    leaflet_scenes: bool = True
    templates: Dict[str, str] = field(default_factory=dict)
    template_directory: Optional[str] = None
    asset_base_url: Optional[str] = None
    asset_source_root: str = '.'
    asset_auth_token: Optional[str] = None
    asset_max_workers: int = 4
    asset_request_timeout: float = 30
    asset_max_retries: int = 3
    progress_bars: bool = True

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ExportOptions':
        """Build options from a (validated) configuration dictionary."""
        return cls(
            output_directory=get_nested(config, 'export.output_directory', '.'),
            use_uuid_for_notename=get_nested(config, 'export.use_uuid_for_notename', True),
            folder_names_as_uuid=get_nested(config, 'export.folder_names_as_uuid', True),
            dump_format=get_nested(config, 'export.dump_format', 'YAML'),
            leaflet_scenes=get_nested(config, 'export.leaflet_scenes', True),
            templates=dict(get_nested(config, 'export.templates', None) or {}),
            template_directory=get_nested(config, 'export.template_directory'),
            asset_base_url=get_nested(config, 'assets.base_url'),
            asset_source_root=get_nested(config, 'assets.source_root', '.'),
            asset_auth_token=get_nested(config, 'assets.auth_token'),
            asset_max_workers=get_nested(config, 'assets.max_workers', 4),
            asset_request_timeout=get_nested(config, 'assets.request_timeout', 30),
            asset_max_retries=get_nested(config, 'assets.max_retries', 3),
            progress_bars=get_nested(config, 'assets.progress_bars', True),
        )


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        return cls._substitute_env_vars_recursive(config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        dump_format = get_nested(config, 'export.dump_format', 'YAML')
        if dump_format not in DUMP_FORMATS:
            # Unknown formats are tolerated at export time, but a config file
            # naming one is almost certainly a typo
            raise ValueError(f"export.dump_format must be one of: {list(DUMP_FORMATS)}")

        for key in ('use_uuid_for_notename', 'folder_names_as_uuid', 'leaflet_scenes'):
            value = get_nested(config, f'export.{key}', True)
            if not isinstance(value, bool):
                raise ValueError(f"export.{key} must be a boolean")

        templates = get_nested(config, 'export.templates', None) or {}
        if not isinstance(templates, dict):
            raise ValueError("export.templates must map document kinds to template paths")
        for key, path in templates.items():
            if key.split('.')[0] not in ('Actor', 'Item'):
                raise ValueError(f"export.templates key '{key}' must start with 'Actor' or 'Item'")
            if not isinstance(path, str) or not path:
                raise ValueError(f"export.templates.{key} must be a template path")

        output_dir = get_nested(config, 'export.output_directory')
        if output_dir and os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"export.output_directory '{output_dir}' is not a directory")

        base_url = get_nested(config, 'assets.base_url')
        if base_url:
            cls._validate_required_field(config, 'assets.base_url')
            cls._validate_url(base_url, 'assets.base_url')

        max_workers = get_nested(config, 'assets.max_workers', 4)
        if not isinstance(max_workers, int) or max_workers < 1:
            raise ValueError("assets.max_workers must be a positive integer")

        timeout = get_nested(config, 'assets.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("assets.request_timeout must be a positive number")

        max_retries = get_nested(config, 'assets.max_retries', 3)
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError("assets.max_retries must be a non-negative integer")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('export', 'assets', 'logging'):
            if section not in merged or merged[section] is None:
                merged[section] = {}

        if getattr(args, 'output_dir', None):
            merged['export']['output_directory'] = args.output_dir

        if getattr(args, 'dump_format', None):
            merged['export']['dump_format'] = args.dump_format

        if getattr(args, 'use_uuid', None) is not None:
            merged['export']['use_uuid_for_notename'] = args.use_uuid
            merged['export']['folder_names_as_uuid'] = args.use_uuid

        if getattr(args, 'asset_base_url', None):
            merged['assets']['base_url'] = args.asset_base_url

        if getattr(args, 'asset_root', None):
            merged['assets']['source_root'] = args.asset_root

        if getattr(args, 'verbose', 0):
            merged['logging']['level'] = 'DEBUG' if args.verbose >= 2 else 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field_path: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field_path)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field_path}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field_path}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "assets.base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config

    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'ExportOptions', 'get_nested', 'DUMP_FORMATS']
