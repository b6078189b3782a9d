"""
Configuration Settings
======================

Configuration dataclasses for the tag extraction and export engine.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, List, Dict, Any
import json
import logging

import yaml

logger = logging.getLogger(__name__)


@dataclass
class TagConfig:
    """Tag convention configuration (the "tag-based" scheme)."""

    convention: str = "tag-based"
    markup_prefix: str = "XMLTag/"
    type_attribute: str = "type"
    image_prefixes: List[str] = field(
        default_factory=lambda: ['image', 'img', 'photo', 'picture', 'pic']
    )
    ignored_tags: List[str] = field(default_factory=lambda: ['Root'])


@dataclass
class PackagingConfig:
    """Packaging-related configuration."""

    link_dir_name: str = "Links"
    link_manifest_name: str = "Links.xml"
    stored_entries: List[str] = field(default_factory=lambda: ['mimetype'])
    compression_level: int = 6  # ZIP compression level (0-9)
    export_prefix: str = "idml-export"
    delivery_media_dir: str = "images"
    supported_image_formats: List[str] = field(
        default_factory=lambda: ['.jpg', '.jpeg', '.png', '.gif', '.tif', '.tiff', '.psd', '.eps', '.pdf', '.ai']
    )


@dataclass
class CacheConfig:
    """Tag registry cache configuration."""

    # "force" | "cached" | "refresh_if_empty"
    policy: str = "refresh_if_empty"


@dataclass
class TrackingConfig:
    """Media map export configuration."""

    export_media_map: bool = False
    media_map_filename: str = "media_map.json"


@dataclass
class EngineConfig:
    """
    Complete engine configuration.

    Contains all configuration for extraction and export:
    - Tag convention
    - Packaging options
    - Registry cache policy
    - Media map tracking

    Example:
        config = EngineConfig()
        config.packaging.export_prefix = "weekly"
        save_config(config, Path("config.yaml"))
    """

    tags: TagConfig = field(default_factory=TagConfig)
    packaging: PackagingConfig = field(default_factory=PackagingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)

    # General settings
    output_dir: str = "output"
    temp_dir: str = ""  # Empty means use system temp
    download_base_url: str = ""
    log_level: str = "INFO"

    # Custom extensions
    custom: Dict[str, Any] = field(default_factory=dict)

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    @property
    def temp_path(self) -> Optional[Path]:
        return Path(self.temp_dir) if self.temp_dir else None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'tags': asdict(self.tags),
            'packaging': asdict(self.packaging),
            'cache': asdict(self.cache),
            'tracking': asdict(self.tracking),
            'output_dir': self.output_dir,
            'temp_dir': self.temp_dir,
            'download_base_url': self.download_base_url,
            'log_level': self.log_level,
            'custom': self.custom,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'EngineConfig':
        """Create from dictionary."""
        config = cls()

        if 'tags' in data:
            config.tags = TagConfig(**data['tags'])
        if 'packaging' in data:
            config.packaging = PackagingConfig(**data['packaging'])
        if 'cache' in data:
            config.cache = CacheConfig(**data['cache'])
        if 'tracking' in data:
            config.tracking = TrackingConfig(**data['tracking'])

        for key in ('output_dir', 'temp_dir', 'download_base_url', 'log_level', 'custom'):
            if key in data:
                setattr(config, key, data[key])

        return config


def load_config(config_path: Path) -> EngineConfig:
    """
    Load configuration from file.

    Supports JSON and YAML formats based on file extension.

    Args:
        config_path: Path to config file

    Returns:
        EngineConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is not supported
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    with open(config_path, 'r', encoding='utf-8') as f:
        if suffix in ['.yaml', '.yml']:
            data = yaml.safe_load(f) or {}
        elif suffix == '.json':
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {suffix}")

    logger.info(f"Loaded configuration from {config_path}")
    return EngineConfig.from_dict(data)


def save_config(config: EngineConfig, config_path: Path) -> None:
    """
    Save configuration to file.

    Supports JSON and YAML formats based on file extension.

    Args:
        config: EngineConfig to save
        config_path: Path to save config file

    Raises:
        ValueError: If file format is not supported
    """
    suffix = config_path.suffix.lower()
    data = config.to_dict()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        if suffix in ['.yaml', '.yml']:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        elif suffix == '.json':
            json.dump(data, f, indent=2)
        else:
            raise ValueError(f"Unsupported config format: {suffix}")

    logger.info(f"Saved configuration to {config_path}")


def get_default_config() -> EngineConfig:
    """Get default configuration."""
    return EngineConfig()


def setup_logging(config: EngineConfig) -> None:
    """Configure root logging from the engine configuration."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
