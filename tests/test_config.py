import json

import pytest

import snapback.config as config
from snapback.config import (
    DEFAULT_CONFIG,
    find_config,
    init_config,
    load_config,
    save_global_config,
    storage_root,
    validate_config,
)


def test_find_config_walks_up(project):
    (project / ".snapbackconfig").write_text("{}", encoding="utf-8")
    nested = project / "a" / "b"
    nested.mkdir(parents=True)

    assert find_config(nested) == project.resolve() / ".snapbackconfig"


def test_load_config_layers_defaults_global_and_project(project):
    save_global_config({"max_snapshots": 5, "exclude_patterns": ["global"]})
    (project / ".snapbackconfig").write_text(
        json.dumps({"exclude_patterns": ["local"]}), encoding="utf-8"
    )

    loaded = load_config(project)

    assert loaded["exclude_patterns"] == ["local"]
    assert loaded["max_snapshots"] == 5
    assert loaded["max_retry_attempts"] == DEFAULT_CONFIG["max_retry_attempts"]


def test_unreadable_global_config_is_ignored(project):
    config.GLOBAL_CONFIG_FILE.parent.mkdir(parents=True)
    config.GLOBAL_CONFIG_FILE.write_text("{broken", encoding="utf-8")

    assert load_config(project)["max_snapshots"] == DEFAULT_CONFIG["max_snapshots"]


def test_invalid_project_config_raises(project):
    (project / ".snapbackconfig").write_text("[1, 2", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(project)


def test_project_config_must_be_an_object(project):
    (project / ".snapbackconfig").write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(project)


def test_validate_coerces_numbers():
    validated = validate_config({**DEFAULT_CONFIG, "max_retry_attempts": "4", "cooldown_seconds": 1})

    assert validated["max_retry_attempts"] == 4
    assert validated["cooldown_seconds"] == 1.0


@pytest.mark.parametrize("override", [
    {"max_retry_attempts": 0},
    {"max_snapshots": -1},
    {"max_depth": "deep"},
    {"exclude_patterns": "node_modules"},
])
def test_validate_rejects_bad_values(override):
    with pytest.raises(ValueError):
        validate_config({**DEFAULT_CONFIG, **override})


def test_storage_root_relative_to_tracked_root(tmp_path):
    assert storage_root(tmp_path, {}) == tmp_path / ".snapback"
    assert storage_root(tmp_path, {"storage_dir": str(tmp_path / "abs")}) == tmp_path / "abs"


def test_init_config_writes_default_patterns(project):
    config_path = init_config(project)

    written = json.loads(config_path.read_text(encoding="utf-8"))
    assert written == {"exclude_patterns": DEFAULT_CONFIG["exclude_patterns"]}


def test_init_config_accepts_custom_patterns(project):
    config_path = init_config(project, exclude_patterns=["vendor"])

    assert json.loads(config_path.read_text(encoding="utf-8"))["exclude_patterns"] == ["vendor"]
