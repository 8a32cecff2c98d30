import json
from pathlib import Path

SNAPBACKCONFIG = ".snapbackconfig"
GLOBAL_CONFIG_FILE = Path.home() / ".snapback" / "config.json"

DEFAULT_CONFIG = {
    "exclude_patterns": ["node_modules", ".git", "dist", "out", "build"],
    "max_retry_attempts": 3,
    "use_batch_restore": False,
    # 0 disables retention eviction
    "max_snapshots": 50,
    # Relative paths resolve against the tracked root
    "storage_dir": ".snapback",
    "cooldown_seconds": 2.0,
    "batch_pause_seconds": 0.5,
    "max_depth": 100,
}

_INT_KEYS = {"max_retry_attempts", "max_snapshots", "max_depth"}
_FLOAT_KEYS = {"cooldown_seconds", "batch_pause_seconds"}


def load_global_config():
    """Load ~/.snapback/config.json: global defaults shared by every project."""
    if GLOBAL_CONFIG_FILE.exists():
        try:
            return json.loads(GLOBAL_CONFIG_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def save_global_config(updates):
    """Merge updates into ~/.snapback/config.json."""
    existing = load_global_config()
    existing.update(updates)
    GLOBAL_CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    GLOBAL_CONFIG_FILE.write_text(json.dumps(existing, indent=2) + "\n", encoding="utf-8")


def find_config(start=None):
    """Walk up from start (default cwd) to find .snapbackconfig, like git finds .git."""
    current = Path(start).resolve() if start else Path.cwd()
    for parent in [current, *current.parents]:
        config_path = parent / SNAPBACKCONFIG
        if config_path.exists():
            return config_path
    return None


def load_config(start=None):
    # Merge order: defaults → global config → project .snapbackconfig
    config = {**DEFAULT_CONFIG, **load_global_config()}

    config_path = find_config(start)
    if config_path:
        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_path}: {e}")
        if not isinstance(raw, dict):
            raise ValueError(f"{config_path} must contain a JSON object")
        config.update(raw)

    return validate_config(config)


def validate_config(config):
    """Coerce numeric settings and reject values the engines cannot use."""
    patterns = config.get("exclude_patterns")
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise ValueError("exclude_patterns must be a list of strings")
    for key in _INT_KEYS:
        try:
            config[key] = int(config[key])
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be an integer, got {config[key]!r}")
    for key in _FLOAT_KEYS:
        try:
            config[key] = float(config[key])
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number, got {config[key]!r}")
    if config["max_retry_attempts"] < 1:
        raise ValueError("max_retry_attempts must be at least 1")
    if config["max_snapshots"] < 0:
        raise ValueError("max_snapshots cannot be negative")
    config["use_batch_restore"] = bool(config["use_batch_restore"])
    return config


def storage_root(root, config):
    """Absolute storage directory for a tracked root."""
    storage = Path(config.get("storage_dir") or DEFAULT_CONFIG["storage_dir"]).expanduser()
    if not storage.is_absolute():
        storage = Path(root) / storage
    return storage


def init_config(path=None, exclude_patterns=None):
    """Create a .snapbackconfig in the given directory. Its directory becomes the tracked root."""
    target = Path(path) if path else Path.cwd()
    config_path = target / SNAPBACKCONFIG
    global_cfg = load_global_config()
    init = {
        "exclude_patterns": list(
            exclude_patterns
            or global_cfg.get("exclude_patterns")
            or DEFAULT_CONFIG["exclude_patterns"]
        ),
    }
    config_path.write_text(json.dumps(init, indent=2) + "\n", encoding="utf-8")
    return config_path
