# ABOUTME: Tests for resolving CLI paths into markdown documents
# ABOUTME: Directories are walked for *.md, explicit files kept, missing paths skipped

from linkdump.utils.files import find_markdown_files


def test_directories_are_walked_for_markdown(tmp_path):
    (tmp_path / "2023").mkdir()
    (tmp_path / "2023" / "b.md").write_text("")
    (tmp_path / "a.md").write_text("")
    (tmp_path / "notes.txt").write_text("")

    assert find_markdown_files([tmp_path]) == [tmp_path / "2023" / "b.md", tmp_path / "a.md"]


def test_explicit_files_are_kept_whatever_the_extension(tmp_path):
    dump = tmp_path / "links.txt"
    dump.write_text("")

    assert find_markdown_files([str(dump), tmp_path / "missing.md"]) == [dump]
