"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import json

from dotenv import load_dotenv


@dataclass
class Config:
    """
    Tracker and peer configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (CHUNKSHARE_*)
    2. Config file (config.json)
    3. Default values
    """
    # Network
    host: str = '0.0.0.0'
    tracker_host: str = 'localhost'
    tracker_port: int = 29392
    transfer_port: int = 6001
    api_port: int = 8080

    # Storage
    shared_dir: Path = field(default_factory=lambda: Path('./shared'))
    download_dir: Path = field(default_factory=lambda: Path('./downloads'))

    # Timeouts (seconds)
    connect_timeout: float = 10.0
    io_timeout: float = 30.0

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        # Network
        config.host = os.getenv('CHUNKSHARE_HOST', config.host)
        config.tracker_host = os.getenv('CHUNKSHARE_TRACKER_HOST', config.tracker_host)
        config.tracker_port = int(os.getenv('CHUNKSHARE_TRACKER_PORT', config.tracker_port))
        config.transfer_port = int(os.getenv('CHUNKSHARE_TRANSFER_PORT', config.transfer_port))
        config.api_port = int(os.getenv('CHUNKSHARE_API_PORT', config.api_port))

        # Storage
        shared_dir = os.getenv('CHUNKSHARE_SHARED_DIR')
        if shared_dir:
            config.shared_dir = Path(shared_dir)
        download_dir = os.getenv('CHUNKSHARE_DOWNLOAD_DIR')
        if download_dir:
            config.download_dir = Path(download_dir)

        # Timeouts
        config.connect_timeout = float(
            os.getenv('CHUNKSHARE_CONNECT_TIMEOUT', config.connect_timeout)
        )
        config.io_timeout = float(os.getenv('CHUNKSHARE_IO_TIMEOUT', config.io_timeout))

        # Logging
        config.log_level = os.getenv('CHUNKSHARE_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        # Network
        config.host = data.get('host', config.host)
        config.tracker_host = data.get('tracker_host', config.tracker_host)
        config.tracker_port = data.get('tracker_port', config.tracker_port)
        config.transfer_port = data.get('transfer_port', config.transfer_port)
        config.api_port = data.get('api_port', config.api_port)

        # Storage
        if 'shared_dir' in data:
            config.shared_dir = Path(data['shared_dir'])
        if 'download_dir' in data:
            config.download_dir = Path(data['download_dir'])

        # Timeouts
        config.connect_timeout = data.get('connect_timeout', config.connect_timeout)
        config.io_timeout = data.get('io_timeout', config.io_timeout)

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'host': self.host,
            'tracker_host': self.tracker_host,
            'tracker_port': self.tracker_port,
            'transfer_port': self.transfer_port,
            'api_port': self.api_port,
            'shared_dir': str(self.shared_dir),
            'download_dir': str(self.download_dir),
            'connect_timeout': self.connect_timeout,
            'io_timeout': self.io_timeout,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    # Start with defaults
    config = Config()

    # Load from file if provided
    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    # Override with environment variables
    env_config = Config.from_env()

    # Merge (env takes precedence for non-default values)
    defaults = Config()
    for key in ['host', 'tracker_host', 'tracker_port', 'transfer_port', 'api_port',
                'shared_dir', 'download_dir', 'connect_timeout', 'io_timeout',
                'log_level']:
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    return config
