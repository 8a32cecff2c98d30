import pytest

import snapback.config as config
import snapback.log as log
import snapback.transfer as transfer
from snapback.session import TrackedRoot


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep audit logs and global config out of the real home directory."""
    home = tmp_path / "home"
    monkeypatch.setattr(log, "LOGS_FILE", home / ".snapback" / "logs.jsonl")
    monkeypatch.setattr(config, "GLOBAL_CONFIG_FILE", home / ".snapback" / "config.json")
    monkeypatch.setattr(transfer, "sleep", lambda seconds: None)
    return home


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_tree():
    def _make(root, files):
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def sample_project(project, make_tree):
    """a.txt, sub/b.txt and an excluded node_modules/x.js."""
    return make_tree(project, {
        "a.txt": "alpha",
        "sub/b.txt": "bravo",
        "node_modules/x.js": "module.exports = 1",
    })


@pytest.fixture
def tracked(sample_project):
    return TrackedRoot(sample_project, {"exclude_patterns": ["node_modules"]}, cooldown=0)
