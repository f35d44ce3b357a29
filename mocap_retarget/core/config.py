"""Configuration management system"""

import copy
from pathlib import Path
from typing import Any, Optional
import yaml


DEFAULT_CONFIG: dict = {
    "app": {
        "name": "MoCap Retarget",
        "version": "0.1.0",
        "log_level": "INFO",
    },
    "body": {
        "min_visibility": 0.1,
    },
    "face": {
        "smoothing_factor": 0.3,
        "morph_exponents": {},
    },
    "blending": {
        "factor": 0.7,
    },
    "capture": {
        "frame_skip": 2,
        "record_fps": 30.0,
    },
    "export": {
        "output_dir": "./output",
        "model_name": "",
        "frame_multiplier": 2,
    },
}


def _merge(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Centralized configuration manager with dot-notation access."""
    
    _instance: Optional["Config"] = None
    _config: dict = {}
    
    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance
    
    def __init__(self, config_path: Optional[str] = None):
        if self._initialized and config_path is None:
            return
            
        if config_path is None:
            config_path = self._find_config()
        elif not Path(config_path).exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        
        self._load(config_path)
        self._initialized = True
    
    def _find_config(self) -> Optional[str]:
        """Find config.yaml in project root, None if there is none."""
        current = Path(__file__).parent
        for _ in range(5):
            config_file = current / "config.yaml"
            if config_file.exists():
                return str(config_file)
            current = current.parent
        
        return None
    
    def _load(self, config_path: Optional[str]) -> None:
        """Load configuration from YAML file over the built-in defaults."""
        loaded = {}
        if config_path is not None:
            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"Config file must contain a mapping: {config_path}")
        self._config = _merge(DEFAULT_CONFIG, loaded)
        self._config_path = config_path
    
    def reload(self) -> None:
        """Reload configuration from file."""
        self._load(self._config_path)
    
    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value using dot notation.
        
        Example:
            config.get("face.smoothing_factor", 0.3)
            config.get("export.model_name")
        """
        keys = key.split(".")
        value = self._config
        
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        
        return value
    
    def set(self, key: str, value: Any) -> None:
        """Set config value using dot notation (runtime only, not persisted)."""
        keys = key.split(".")
        config = self._config
        
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        
        config[keys[-1]] = value
    
    def save(self, path: Optional[str] = None) -> None:
        """Save current configuration to file."""
        save_path = path or self._config_path
        if save_path is None:
            raise ValueError("No path to save configuration to")
        with open(save_path, "w") as f:
            yaml.dump(self._config, f, default_flow_style=False, allow_unicode=True)
    
    @property
    def body(self) -> dict:
        return self._config.get("body", {})
    
    @property
    def face(self) -> dict:
        return self._config.get("face", {})
    
    @property
    def blending(self) -> dict:
        return self._config.get("blending", {})
    
    @property
    def capture(self) -> dict:
        return self._config.get("capture", {})
    
    @property
    def export(self) -> dict:
        return self._config.get("export", {})
    
    def __repr__(self) -> str:
        return f"Config({self._config_path or '<defaults>'})"
