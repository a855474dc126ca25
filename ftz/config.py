"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
import json

from dotenv import load_dotenv

from .transfer.protocol import DEFAULT_PORT
from .transfer.uploader import CHUNK_SIZE


@dataclass
class Config:
    """
    ftz Configuration.

    Configuration priority (highest to lowest):
    1. Command-line options
    2. Environment variables (FTZ_*)
    3. Config file (ftz.json)
    4. Default values
    """
    # Network
    host: str = '0.0.0.0'
    port: int = DEFAULT_PORT
    connect_timeout: float = 10.0

    # Hosted directories
    get_dir: Optional[Path] = None
    put_dir: Optional[Path] = None

    # Performance
    chunk_size: int = CHUNK_SIZE  # 2MB

    # Logging
    log_level: str = 'INFO'

    # Re-raise connection errors in the server loop (debugging)
    strict: bool = False

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        # Network
        config.host = os.getenv('FTZ_HOST', config.host)
        config.port = int(os.getenv('FTZ_PORT', config.port))
        config.connect_timeout = float(
            os.getenv('FTZ_CONNECT_TIMEOUT', config.connect_timeout)
        )

        # Hosted directories
        get_dir = os.getenv('FTZ_GET_DIR')
        if get_dir:
            config.get_dir = Path(get_dir)
        put_dir = os.getenv('FTZ_PUT_DIR')
        if put_dir:
            config.put_dir = Path(put_dir)

        # Performance
        config.chunk_size = int(os.getenv('FTZ_CHUNK_SIZE', config.chunk_size))

        # Logging
        config.log_level = os.getenv('FTZ_LOG_LEVEL', config.log_level)

        config.strict = os.getenv('FTZ_STRICT', 'false').lower() == 'true'

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
        config.port = data.get('port', config.port)
        config.connect_timeout = data.get('connect_timeout', config.connect_timeout)

        # Hosted directories
        if data.get('get_dir'):
            config.get_dir = Path(data['get_dir'])
        if data.get('put_dir'):
            config.put_dir = Path(data['put_dir'])

        # Performance
        config.chunk_size = data.get('chunk_size', config.chunk_size)

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        config.strict = data.get('strict', config.strict)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'host': self.host,
            'port': self.port,
            'connect_timeout': self.connect_timeout,
            'get_dir': str(self.get_dir) if self.get_dir else None,
            'put_dir': str(self.put_dir) if self.put_dir else None,
            'chunk_size': self.chunk_size,
            'log_level': self.log_level,
            'strict': self.strict,
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
    for key in ['host', 'port', 'connect_timeout', 'get_dir', 'put_dir',
                'chunk_size', 'log_level', 'strict']:
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    return config

