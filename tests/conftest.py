import pytest

from jpegbudget.tasks import Task
from tests.helpers import FakeEncoder


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def make_task(tmp_path):
    """Write ``data`` as a source file and return a Task for it."""
    src_dir = tmp_path / "src"
    out_dir = tmp_path / "out"
    src_dir.mkdir(exist_ok=True)
    out_dir.mkdir(exist_ok=True)

    def _make(name, data):
        path = src_dir / name
        path.write_bytes(data)
        return Task(
            id=name,
            source_path=path,
            output_path=out_dir / f"{path.stem}.jpg",
            source_size_bytes=len(data),
        )

    return _make
