"""Tests for extras classification, stale removal and flattened linking."""

import errno
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from lidarr_extras.sync.extras import (
    flattened_name,
    is_extra_file,
    link_extras,
    remove_existing_extras,
)


def _make_tree(root: Path, files: dict) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


def _snapshot(directory: Path) -> dict:
    """Map entry name -> (inode, content) for files at the top level."""
    return {
        entry.name: (entry.stat().st_ino, entry.read_bytes())
        for entry in directory.iterdir()
        if entry.is_file()
    }


class TestIsExtraFile:
    """Tests for is_extra_file()."""

    @pytest.mark.parametrize("name", [
        "cover.jpg", "folder.JPEG", "scan.png", "rip.log", "album.cue",
        "info.txt", "list.m3u", "list.M3U8", "release.yml", "release.yaml",
    ])
    def test_allowlisted_extensions(self, name):
        assert is_extra_file(name)

    @pytest.mark.parametrize("name", [
        "01.flac", "02.mp3", "readme.nfo", "cover", ".log", "archive.jpg.zip",
    ])
    def test_other_files(self, name):
        assert not is_extra_file(name)

    def test_depends_only_on_name(self, tmp_path):
        # Nonexistent file classifies the same way
        assert is_extra_file(str(tmp_path / "missing" / "cover.jpg"))

    def test_custom_allowlist(self):
        assert is_extra_file("booklet.pdf", frozenset({".pdf"}))
        assert not is_extra_file("cover.jpg", frozenset({".pdf"}))


def test_flattened_name():
    assert flattened_name("", "cover.jpg") == "cover.jpg"
    assert flattened_name("disc1", "log.log") == "disc1-log.log"
    assert flattened_name("disc1-scans", "back.png") == "disc1-scans-back.png"


class TestRemoveExistingExtras:
    """Tests for remove_existing_extras()."""

    def test_removes_only_top_level_extras(self, tmp_path):
        album = tmp_path / "album"
        _make_tree(album, {
            "01.flac": b"audio",
            "cover.jpg": b"img",
            "disc1-log.log": b"log",
            "readme.nfo": b"nfo",
            "Scans/front.jpg": b"scan",
        })

        report = remove_existing_extras(album)

        assert sorted(Path(p).name for p in report.removed) == ["cover.jpg", "disc1-log.log"]
        assert report.failed == []
        assert (album / "01.flac").exists()
        assert (album / "readme.nfo").exists()
        assert (album / "Scans" / "front.jpg").exists()

    def test_directories_with_extra_names_are_kept(self, tmp_path):
        album = tmp_path / "album"
        (album / "artwork.jpg").mkdir(parents=True)

        report = remove_existing_extras(album)

        assert report.removed == []
        assert (album / "artwork.jpg").is_dir()

    def test_symlinks_are_not_removed(self, tmp_path):
        album = tmp_path / "album"
        album.mkdir()
        target = tmp_path / "real.jpg"
        target.write_bytes(b"img")
        (album / "cover.jpg").symlink_to(target)

        report = remove_existing_extras(album)

        assert report.removed == []
        assert (album / "cover.jpg").is_symlink()

    def test_delete_failure_is_recorded_and_pass_continues(self, tmp_path):
        album = tmp_path / "album"
        _make_tree(album, {"a.jpg": b"1", "b.jpg": b"2"})
        real_unlink = Path.unlink

        def flaky_unlink(self, *args, **kwargs):
            if self.name == "a.jpg":
                raise PermissionError(errno.EACCES, "Permission denied", str(self))
            return real_unlink(self, *args, **kwargs)

        with patch.object(Path, "unlink", flaky_unlink):
            report = remove_existing_extras(album)

        assert [Path(p).name for p in report.failed] == ["a.jpg"]
        assert [Path(p).name for p in report.removed] == ["b.jpg"]
        assert (album / "a.jpg").exists()

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(OSError):
            remove_existing_extras(tmp_path / "nope")


class TestLinkExtras:
    """Tests for link_extras()."""

    def test_flattens_nested_extras(self, tmp_path):
        source = tmp_path / "root"
        dest = tmp_path / "dest"
        dest.mkdir()
        _make_tree(source, {
            "cover.jpg": b"cover",
            "disc1/log.log": b"log",
            "disc1/readme.nfo": b"nfo",
        })

        report = link_extras(source, dest)

        assert sorted(os.listdir(dest)) == ["cover.jpg", "disc1-log.log"]
        assert report.failed == []
        assert len(report.linked) == 2

    def test_creates_hardlinks(self, tmp_path):
        source = tmp_path / "root"
        dest = tmp_path / "dest"
        dest.mkdir()
        _make_tree(source, {"CD1/Scans/back.png": b"png"})

        link_extras(source, dest)

        linked = dest / "CD1-Scans-back.png"
        assert linked.stat().st_ino == (source / "CD1" / "Scans" / "back.png").stat().st_ino

    def test_audio_and_other_files_are_skipped(self, tmp_path):
        source = tmp_path / "root"
        dest = tmp_path / "dest"
        dest.mkdir()
        _make_tree(source, {"01.flac": b"a", "info.nfo": b"n", "cover.jpg": b"c"})

        report = link_extras(source, dest)

        assert os.listdir(dest) == ["cover.jpg"]
        assert report.skipped == 2

    def test_existing_destination_is_replaced(self, tmp_path):
        source = tmp_path / "root"
        dest = tmp_path / "dest"
        _make_tree(source, {"cover.jpg": b"new"})
        _make_tree(dest, {"cover.jpg": b"old"})

        link_extras(source, dest)

        assert (dest / "cover.jpg").read_bytes() == b"new"
        assert (dest / "cover.jpg").stat().st_ino == (source / "cover.jpg").stat().st_ino

    def test_never_touches_non_extras_in_destination(self, tmp_path):
        source = tmp_path / "root"
        dest = tmp_path / "dest"
        _make_tree(source, {"cover.jpg": b"c", "01.flac": b"src audio"})
        _make_tree(dest, {"01.flac": b"library audio", "notes.nfo": b"n"})

        link_extras(source, dest)

        assert (dest / "01.flac").read_bytes() == b"library audio"
        assert (dest / "notes.nfo").read_bytes() == b"n"

    def test_link_failure_does_not_stop_walk(self, tmp_path):
        source = tmp_path / "root"
        dest = tmp_path / "dest"
        dest.mkdir()
        _make_tree(source, {"a.jpg": b"a", "b.jpg": b"b"})
        real_link = os.link

        def flaky_link(src, dst, *args, **kwargs):
            if src.endswith("a.jpg"):
                raise OSError(errno.EIO, "I/O error")
            return real_link(src, dst, *args, **kwargs)

        with patch("lidarr_extras.sync.fs.os.link", side_effect=flaky_link):
            report = link_extras(source, dest)

        assert [Path(p).name for p in report.failed] == ["a.jpg"]
        assert os.listdir(dest) == ["b.jpg"]
        assert report.partial

    def test_unreadable_subtree_is_skipped(self, tmp_path):
        source = tmp_path / "root"
        dest = tmp_path / "dest"
        dest.mkdir()
        _make_tree(source, {"bad/x.jpg": b"x", "good/y.jpg": b"y", "z.jpg": b"z"})
        real_scandir = os.scandir

        def flaky_scandir(path):
            if Path(path).name == "bad":
                raise PermissionError(errno.EACCES, "Permission denied", str(path))
            return real_scandir(path)

        with patch("lidarr_extras.sync.extras.os.scandir", side_effect=flaky_scandir):
            report = link_extras(source, dest)

        assert sorted(os.listdir(dest)) == ["good-y.jpg", "z.jpg"]
        assert [Path(p).name for p in report.unreadable_dirs] == ["bad"]
        assert report.partial

    def test_album_folder_inside_source_is_not_descended(self, tmp_path):
        source = tmp_path / "root"
        album = source / "Album"
        _make_tree(source, {"cover.jpg": b"c", "Album/01.flac": b"a"})

        link_extras(source, album)
        link_extras(source, album)

        assert sorted(os.listdir(album)) == ["01.flac", "cover.jpg"]

    def test_flattened_collision_keeps_one_file(self, tmp_path):
        source = tmp_path / "root"
        dest = tmp_path / "dest"
        dest.mkdir()
        _make_tree(source, {"a-b.jpg": b"flat", "a/b.jpg": b"nested"})

        report = link_extras(source, dest)

        assert os.listdir(dest) == ["a-b.jpg"]
        assert len(report.linked) == 2


class TestResync:
    """Removal followed by linking converges on the same folder."""

    def test_second_run_matches_first(self, tmp_path):
        source = tmp_path / "root"
        album = tmp_path / "album"
        _make_tree(source, {
            "cover.jpg": b"cover",
            "CD1/rip.log": b"log1",
            "CD2/rip.log": b"log2",
            "CD2/Scans/inlay.png": b"png",
            "01.flac": b"audio",
        })
        _make_tree(album, {"01.flac": b"audio"})

        remove_existing_extras(album)
        link_extras(source, album)
        first = _snapshot(album)

        remove_existing_extras(album)
        link_extras(source, album)
        second = _snapshot(album)

        assert first == second
        assert sorted(first) == [
            "01.flac", "CD1-rip.log", "CD2-Scans-inlay.png", "CD2-rip.log", "cover.jpg",
        ]

    def test_renamed_extra_does_not_linger(self, tmp_path):
        source = tmp_path / "root"
        album = tmp_path / "album"
        album.mkdir()
        _make_tree(source, {"old.jpg": b"img"})

        remove_existing_extras(album)
        link_extras(source, album)
        (source / "old.jpg").rename(source / "new.jpg")
        remove_existing_extras(album)
        link_extras(source, album)

        assert os.listdir(album) == ["new.jpg"]
