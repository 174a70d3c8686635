"""Tests for world identity persistence."""

import uuid
from pathlib import Path

from worldsnap import identity
from worldsnap.identity import WORLD_UUID_PATH, ensure_world_id, read_world_id


class TestEnsureWorldId:
    def test_generates_and_persists(self, tmp_path):
        world_id = ensure_world_id(tmp_path)

        uuid.UUID(world_id)
        assert (tmp_path / WORLD_UUID_PATH).read_text().strip() == world_id
        assert read_world_id(tmp_path) == world_id

    def test_generated_at_most_once(self, tmp_path, monkeypatch):
        calls = []
        real_uuid4 = uuid.uuid4

        def counting_uuid4():
            calls.append(1)
            return real_uuid4()

        monkeypatch.setattr(identity.uuid, "uuid4", counting_uuid4)

        ids = {ensure_world_id(tmp_path) for _ in range(5)}

        assert len(ids) == 1
        assert len(calls) == 1

    def test_written_at_most_once(self, tmp_path, monkeypatch):
        writes = []
        real_write_text = Path.write_text

        def counting_write_text(self, *args, **kwargs):
            writes.append(self)
            return real_write_text(self, *args, **kwargs)

        monkeypatch.setattr(Path, "write_text", counting_write_text)

        ensure_world_id(tmp_path)
        path = tmp_path / WORLD_UUID_PATH
        first_mtime = path.stat().st_mtime_ns
        for _ in range(3):
            ensure_world_id(tmp_path)

        assert writes == [path]
        assert path.stat().st_mtime_ns == first_mtime

    def test_existing_id_returned_trimmed_and_unvalidated(self, tmp_path):
        path = tmp_path / WORLD_UUID_PATH
        path.parent.mkdir(parents=True)
        path.write_text("  not-a-uuid-at-all \n")

        assert ensure_world_id(tmp_path) == "not-a-uuid-at-all"
        # File left exactly as it was
        assert path.read_text() == "  not-a-uuid-at-all \n"
