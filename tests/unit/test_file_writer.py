"""Unit tests for all-or-nothing file writes."""

import os

import pytest

from rulewizard.errors import WriteConflict
from rulewizard.utils.file_writer import FileBatch, write_all


@pytest.fixture
def pom(tmp_path):
    path = tmp_path / "pom.xml"
    path.write_bytes(b"<project/>\n")
    return path


def leftover_temps(root):
    return sorted(p.name for p in root.rglob(".*.tmp"))


class TestWriteAll:
    """Successful batches."""

    def test_all_files_written(self, tmp_path, pom):
        artifact = tmp_path / "docs" / "diagrams" / "class.puml"

        written = write_all({pom: "<project>\n</project>\n", artifact: "@startuml\n@enduml\n"})

        assert written == [artifact, pom]
        assert pom.read_text(encoding="utf-8") == "<project>\n</project>\n"
        assert artifact.read_text(encoding="utf-8") == "@startuml\n@enduml\n"
        assert leftover_temps(tmp_path) == []

    def test_line_endings_and_bytes_kept(self, tmp_path, pom):
        backup = tmp_path / "pom.xml.bak"

        write_all({pom: "<project>\r\n</project>\r\n", backup: b"<project/>\n"})

        assert pom.read_bytes() == b"<project>\r\n</project>\r\n"
        assert backup.read_bytes() == b"<project/>\n"

    def test_guard_matching_disk_passes(self, tmp_path, pom):
        artifact = tmp_path / "a.puml"

        write_all({pom: "new", artifact: "x"}, expected={pom: b"<project/>\n", artifact: None})

        assert pom.read_text(encoding="utf-8") == "new"

    def test_existing_file_mode_kept(self, pom):
        os.chmod(pom, 0o600)

        write_all({pom: "new"})

        assert pom.stat().st_mode & 0o777 == 0o600


class TestNothingWrittenOnFailure:
    """A failing batch leaves every destination as it was."""

    def test_directory_in_the_way(self, tmp_path, pom):
        blocked = tmp_path / "docs" / "class.puml"
        blocked.mkdir(parents=True)

        with pytest.raises(IsADirectoryError, match="class.puml"):
            write_all({pom: "new", blocked: "@startuml\n"})

        assert pom.read_bytes() == b"<project/>\n"
        assert blocked.is_dir()
        assert leftover_temps(tmp_path) == []

    def test_changed_document_raises_conflict(self, tmp_path, pom):
        with pytest.raises(WriteConflict, match="changed on disk") as exc_info:
            write_all({pom: "new", tmp_path / "a.puml": "x"}, expected={pom: b"<project></project>\n"})

        assert exc_info.value.in_flight == str(pom)
        assert pom.read_bytes() == b"<project/>\n"
        assert not (tmp_path / "a.puml").exists()
        assert leftover_temps(tmp_path) == []

    def test_file_that_appeared_raises_conflict(self, tmp_path, pom):
        artifact = tmp_path / "a.puml"
        artifact.write_text("theirs", encoding="utf-8")

        with pytest.raises(WriteConflict, match="appeared on disk"):
            write_all({pom: "new", artifact: "ours"}, expected={artifact: None})

        assert artifact.read_text(encoding="utf-8") == "theirs"
        assert pom.read_bytes() == b"<project/>\n"

    def test_failed_replace_restores_earlier_files(self, tmp_path, pom, monkeypatch):
        first = tmp_path / "a.txt"
        first.write_text("old a", encoding="utf-8")
        created = tmp_path / "new" / "b.txt"
        real_replace = os.replace
        calls = []

        def failing_replace(src, dst):
            calls.append(dst)
            if len(calls) == 3:
                raise PermissionError("read-only destination")
            real_replace(src, dst)

        monkeypatch.setattr(os, "replace", failing_replace)

        with pytest.raises(PermissionError):
            write_all({first: "new a", created: "new b", pom: "new pom"})

        assert first.read_text(encoding="utf-8") == "old a"
        assert not created.exists()
        assert not created.parent.exists()
        assert pom.read_bytes() == b"<project/>\n"
        assert leftover_temps(tmp_path) == []

    def test_batch_not_reported_as_written(self, tmp_path, pom):
        batch = FileBatch({pom: "new"}, expected={pom: b"other"})

        with pytest.raises(WriteConflict):
            batch.write()

        assert pom.read_bytes() == b"<project/>\n"
