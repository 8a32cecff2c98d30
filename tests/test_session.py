import pytest

from snapback.errors import AlreadyInProgress, Cooldown
from snapback.ignore import ALWAYS_IGNORE
from snapback.session import CAPTURING, IDLE, RESTORING, TrackedRoot


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def test_state_tracks_running_operation(project):
    tracked = TrackedRoot(project, cooldown=0)

    assert tracked.state == IDLE
    with tracked.operation(RESTORING):
        assert tracked.state == RESTORING
    assert tracked.state == IDLE


def test_state_resets_when_operation_fails(project):
    tracked = TrackedRoot(project, cooldown=0)

    with pytest.raises(RuntimeError):
        with tracked.operation(CAPTURING):
            raise RuntimeError("boom")

    assert tracked.state == IDLE


def test_second_operation_is_rejected_not_queued(project):
    tracked = TrackedRoot(project, cooldown=0)

    with tracked.operation(CAPTURING):
        with pytest.raises(AlreadyInProgress) as excinfo:
            with tracked.operation(RESTORING):
                pass
        assert excinfo.value.state == CAPTURING
        assert tracked.state == CAPTURING


def test_cooldown_measured_from_last_start(project):
    clock = FakeClock()
    tracked = TrackedRoot(project, cooldown=2.0, clock=clock)

    with tracked.operation(CAPTURING):
        pass

    clock.now = 101.0
    with pytest.raises(Cooldown) as excinfo:
        with tracked.operation(RESTORING):
            pass
    assert excinfo.value.remaining == pytest.approx(1.0)

    clock.now = 102.1
    with tracked.operation(RESTORING):
        assert tracked.state == RESTORING


def test_cooldown_defaults_from_config(project):
    tracked = TrackedRoot(project, {"cooldown_seconds": 5})

    assert tracked.cooldown == 5.0


def test_exclude_patterns_combine_config_and_bookkeeping(project):
    tracked = TrackedRoot(project, {"exclude_patterns": ["dist"]})

    assert tracked.exclude_patterns() == ["dist", *ALWAYS_IGNORE]
    assert tracked.exclude_patterns(["tmp"]) == ["tmp", *ALWAYS_IGNORE]
    assert tracked.protected_patterns() == list(ALWAYS_IGNORE)


def test_custom_storage_dir_is_protected(project):
    tracked = TrackedRoot(project, {"storage_dir": "var/snaps"})

    assert "var/snaps" in tracked.protected_patterns()
    assert tracked.store.storage_root == project.resolve() / "var" / "snaps"


def test_invalid_config_is_rejected(project):
    with pytest.raises(ValueError):
        TrackedRoot(project, {"max_retry_attempts": 0})
