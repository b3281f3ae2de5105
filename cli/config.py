"""Configuration management for the chunkrelay CLI."""

import json
import os
import shutil
from pathlib import Path
from typing import Optional


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "relay_host": os.environ.get("RELAY_CLIENT_HOST", "localhost"),
        "relay_port": int(os.environ.get("RELAY_CLIENT_PORT", "8080")),
        "use_https": False,
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "poll_interval": 1.0,
        "stall_timeout": 300,
        "download_dir": "downloads",
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.chunkrelay/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.chunkrelay' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError):
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except IOError:
                    pass
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError:
                pass
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
            os.chmod(self.config_path, 0o600)
        except IOError:
            pass

    def get_api_key(self) -> Optional[str]:
        """
        Get stored API key.

        Returns:
            API key string or None if not set
        """
        return self.data.get('api_key')

    def set_api_key(self, key: str) -> None:
        """
        Set API key and save to file.

        Args:
            key: API key string (format: "lft_<hex>")
        """
        self.data['api_key'] = key
        self.save()

    def get_base_url(self) -> str:
        """
        Get relay base URL.

        Returns:
            Base URL string (e.g., "http://localhost:8080")
        """
        scheme = 'https' if self.data.get('use_https') else 'http'
        host = self.data.get('relay_host', 'localhost')
        port = self.data.get('relay_port', 8080)
        return f"{scheme}://{host}:{port}"

    def get_timeout(self) -> int:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get network retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }

    def get_poll_config(self) -> dict:
        """
        Get flow-control polling configuration.

        Returns:
            Dictionary with 'poll_interval' seconds and 'stall_timeout' seconds
            (None or 0 means wait forever)
        """
        return {
            'poll_interval': float(self.data.get('poll_interval', 1.0)),
            'stall_timeout': self.data.get('stall_timeout') or None,
        }

    def get_download_dir(self) -> Path:
        """
        Get directory received files are written to.
        """
        return Path(self.data.get('download_dir', 'downloads'))
