import os
from typing import Any, Dict, List, Optional

import yaml

from mutscan.alignment.mummer import DEFAULT_SHOW_SNPS_ARGS
from mutscan.annotation.joiner import JOIN_BACKENDS
from mutscan.errors import InputValidationError

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    "log_level": "INFO",
    "output_file": None,
    "work_dir": "mutscan_work",
    "reference_name": None,
    "threads": 4,
    "join_backend": "auto",
    "snps_header_lines": 4,
    "seq_id_column": 14,
    "nucmer": "nucmer",
    "show_snps": "show-snps",
    "bedtools": "bedtools",
    "nucmer_args": [],
    "show_snps_args": list(DEFAULT_SHOW_SNPS_ARGS),
    "keep_intermediate": False,
}

# Required configuration parameters
REQUIRED_PARAMS: List[str] = ["annotation", "reference"]
# Exactly one source of mutant variants is needed
MUTANT_SOURCES: List[str] = ["mutants_dir", "snps_dir"]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConfigurationError(InputValidationError):
    """Custom exception for configuration errors."""
    pass


class Config:
    """
    Manages configuration settings for the pipeline.

    Loads settings from a YAML file and applies overrides coming from the
    command line. Validates the presence of required parameters.
    """
    def __init__(self):
        self._settings: Dict[str, Any] = DEFAULT_CONFIG.copy()
        self._settings["nucmer_args"] = []
        self._settings["show_snps_args"] = list(DEFAULT_SHOW_SNPS_ARGS)
        self._resource_files: Dict[str, Optional[str]] = {
            "annotation": None,
            "reference": None,
            "mutants_dir": None,
            "snps_dir": None,
        }

    def load(self, config_file: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        """
        Loads configuration from a file and explicit overrides.

        Args:
            config_file: Optional path to a YAML configuration file.
            overrides: Values given on the command line. ``None`` values are
                       treated as "not given" and do not override the file.
        """
        # 1. Load from config file if specified
        if config_file:
            if not os.path.exists(config_file):
                raise ConfigurationError(f"Config file not found: {config_file}")
            try:
                with open(config_file, 'r') as f:
                    file_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Error parsing config file {config_file}: {e}")
            except OSError as e:
                raise ConfigurationError(f"Error reading config file {config_file}: {e}")
            if file_config:  # Check if file is not empty
                if not isinstance(file_config, dict):
                    raise ConfigurationError(f"Config file {config_file} must contain a mapping")
                self._settings.update(file_config)

        # 2. Override with CLI values (only those explicitly provided)
        if overrides:
            self._settings.update({key: value for key, value in overrides.items() if value is not None})

        # 3. Validate
        self._validate_required()
        self._validate_values()

        # 4. Register resource files
        self._register_resources()

    def _validate_required(self):
        """Checks if all required parameters are set and point at existing paths."""
        missing = [param for param in REQUIRED_PARAMS if self._settings.get(param) is None]
        if missing:
            raise ConfigurationError(f"Missing required configuration parameters: {', '.join(missing)}")

        sources = [param for param in MUTANT_SOURCES if self._settings.get(param) is not None]
        if not sources:
            raise ConfigurationError(f"One of {' or '.join(MUTANT_SOURCES)} must be set")
        if len(sources) > 1:
            raise ConfigurationError(f"Only one of {' or '.join(MUTANT_SOURCES)} may be set")

        for param in REQUIRED_PARAMS + sources:
            filepath = self._settings.get(param)
            if not os.path.exists(filepath):
                raise ConfigurationError(f"Required file not found: {param} = {filepath}")

    def _validate_values(self):
        threads = self._settings.get("threads")
        if not isinstance(threads, int) or isinstance(threads, bool) or threads < 1:
            raise ConfigurationError(f"threads must be a positive integer, got {threads!r}")

        backend = self._settings.get("join_backend")
        if backend not in JOIN_BACKENDS:
            raise ConfigurationError(
                f"join_backend must be one of {', '.join(JOIN_BACKENDS)}, got {backend!r}"
            )

        log_level = str(self._settings.get("log_level")).upper()
        if log_level not in LOG_LEVELS:
            raise ConfigurationError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")
        self._settings["log_level"] = log_level

        for key in ("snps_header_lines", "seq_id_column"):
            value = self._settings.get(key)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigurationError(f"{key} must be a non-negative integer, got {value!r}")
        if self._settings["seq_id_column"] < 4:
            raise ConfigurationError("seq_id_column must be 4 or greater")

        for key in ("nucmer_args", "show_snps_args"):
            value = self._settings.get(key)
            if not isinstance(value, list):
                raise ConfigurationError(f"{key} must be a list of arguments, got {value!r}")
            self._settings[key] = [str(arg) for arg in value]

    def _register_resources(self):
        """Updates the resource file paths based on the loaded configuration."""
        for key in self._resource_files:
            if key in self._settings:
                self._resource_files[key] = self._settings[key]

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieves a configuration value."""
        return self._settings.get(key, default)

    def get_all(self) -> Dict[str, Any]:
        """Retrieves all configuration settings."""
        return self._settings.copy()

    def get_resource_files(self) -> Dict[str, Optional[str]]:
        """Retrieves the registered resource file paths."""
        return self._resource_files.copy()
