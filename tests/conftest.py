import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path so `import filekeep...` works without installing
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeObserver:
    """Stands in for ``watchdog.observers.Observer`` without starting threads."""

    def __init__(self):
        self.scheduled = []
        self.daemon = False
        self.started = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        self.started = True

    def is_alive(self):
        return self.started and not self.stopped

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass


@pytest.fixture
def fake_observer():
    return FakeObserver()


@pytest.fixture
def watched(tmp_path):
    """A single watched file and its (not yet created) backup directory."""
    tmp_path = tmp_path.resolve()
    src_dir = tmp_path / "src"
    src_dir.mkdir()
    file_path = src_dir / "data.txt"
    file_path.write_text("v1")
    backup_dir = tmp_path / "backups" / "data"
    return file_path, backup_dir
