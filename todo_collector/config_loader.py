#!/usr/bin/env python3
"""
Unified Configuration Loader
Loads configuration from config.yaml and .env files

config.yaml:
    vault:
      path: /path/to/vault
    classification:
      url: https://classifier.example.com/
      timeout: 60

.env:
    VAULT_PATH=/path/to/vault
    GEMINI_API_KEY=...
    CLASSIFICATION_URL=...
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads configuration from config.yaml and .env files"""

    def __init__(self, config_path: Optional[str] = None, env_path: Optional[str] = None):
        # Default to the working directory for config files
        if config_path is None:
            config_path = os.getenv("TODO_COLLECTOR_CONFIG", "config.yaml")
        if env_path is None:
            env_path = ".env"
        self.config_path = Path(config_path)
        self.env_path = Path(env_path)
        self.config_data: Dict[str, Any] = {}
        self.env_data: Dict[str, str] = {}
        self._load_config()

    def _load_config(self):
        """Load configuration from both files"""
        if self.env_path.exists():
            load_dotenv(self.env_path)
        else:
            logger.debug(f"{self.env_path} not found, using environment variables only")
        self.env_data = dict(os.environ)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self.config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                logger.warning(f"Could not parse {self.config_path}: {e}, using defaults")
                self.config_data = {}
        else:
            logger.debug(f"{self.config_path} not found, using defaults")
            self.config_data = {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with environment variable override support"""
        env_key = key.upper().replace('.', '_')
        if env_key in self.env_data:
            return self.env_data[env_key]

        keys = key.split('.')
        value = self.config_data
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def get_vault_path(self) -> Optional[str]:
        """Get vault path with environment variable override"""
        return self.get('vault.path') or os.getenv('VAULT_PATH')

    def get_gemini_api_key(self) -> Optional[str]:
        """Get the classification credential from environment"""
        return os.getenv('GEMINI_API_KEY')

    def get_classification_url(self) -> Optional[str]:
        return self.get('classification.url') or os.getenv('CLASSIFICATION_URL')

    def get_classification_timeout(self) -> float:
        try:
            return float(self.get('classification.timeout', 60))
        except (TypeError, ValueError):
            return 60.0

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []
        vault_path = self.get_vault_path()
        if not vault_path:
            errors.append("Vault path not configured (set vault.path in config.yaml or VAULT_PATH env var)")
        elif not Path(vault_path).is_dir():
            errors.append(f"Vault path does not exist: {vault_path}")
        return errors


# Global config loader instance
_config_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Get the global config loader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader
