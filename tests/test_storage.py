"""Tests for the output tree, resume snapshots and atomic writes."""

import json

import pytest

from nft_flipper.errors import StorageIOError
from nft_flipper.models import Category, PinResult, PublishResult
from nft_flipper.storage import (
    OutputTree,
    atomic_copy,
    atomic_write_bytes,
    atomic_writer,
    parse_token_id,
    snapshot,
    sync,
)


def touch_metadata(folder, *names):
    folder.mkdir(parents=True, exist_ok=True)
    (folder / "images").mkdir(exist_ok=True)
    for name in names:
        (folder / name).write_text("{}")


class TestParseTokenId:
    def test_integer_json_filenames(self):
        assert parse_token_id("0.json") == 0
        assert parse_token_id("1234.json") == 1234

    def test_rejects_other_names(self):
        assert parse_token_id("notes.json") is None
        assert parse_token_id("12.png") is None
        assert parse_token_id("-1.json") is None
        assert parse_token_id(".json") is None
        assert parse_token_id(".5.json.tmp") is None

    def test_rejects_non_ascii_digits(self):
        assert parse_token_id("٣.json") is None


class TestSnapshot:
    def test_missing_directory_is_created(self, tmp_path):
        """Should create <category>/images and report an empty tree."""
        snap = snapshot(tmp_path, Category.ORIGINAL)

        assert (tmp_path / "original" / "images").is_dir()
        assert snap.is_empty
        assert snap.watermark == 0
        assert snap.next_id == 0

    def test_highest_integer_filename_wins(self, tmp_path):
        touch_metadata(tmp_path / "original", "0.json", "1.json", "2.json", "10.json", "9.json")

        snap = snapshot(tmp_path, "original")

        assert snap.highest_persisted_id == 10
        assert snap.next_id == 11

    def test_non_token_files_are_ignored(self, tmp_path):
        folder = tmp_path / "flipped"
        touch_metadata(folder, "3.json", "notes.json", "99.txt", ".7.json.tmp")
        (folder / "images" / "50.png").write_bytes(b"x")

        assert snapshot(tmp_path, Category.FLIPPED).highest_persisted_id == 3

    def test_existing_but_empty(self, tmp_path):
        touch_metadata(tmp_path / "original")

        snap = snapshot(tmp_path, Category.ORIGINAL)

        assert snap.is_empty
        assert snap.next_id == 0

    def test_single_token_zero(self, tmp_path):
        """Token 0 alone must resume at 1, not be refetched forever."""
        touch_metadata(tmp_path / "original", "0.json")

        snap = snapshot(tmp_path, Category.ORIGINAL)

        assert snap.highest_persisted_id == 0
        assert snap.next_id == 1

    def test_sync_returns_zero_for_empty(self, tmp_path):
        assert sync(tmp_path, Category.ORIGINAL) == 0

    def test_sync_returns_highest(self, tmp_path):
        touch_metadata(tmp_path / "original", "0.json", "2.json", "5.json")
        assert sync(tmp_path, Category.ORIGINAL) == 5

    def test_unknown_category(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown category"):
            snapshot(tmp_path, "sideways")


class TestAtomicWrites:
    def test_write_replaces_target(self, tmp_path):
        target = tmp_path / "1.json"
        target.write_bytes(b"old")

        atomic_write_bytes(target, b"new")

        assert target.read_bytes() == b"new"
        assert list(tmp_path.iterdir()) == [target]

    def test_failure_leaves_no_partial_file(self, tmp_path):
        """Should not leave the target or the temp file behind on error."""
        target = tmp_path / "1.png"

        with pytest.raises(RuntimeError):
            with atomic_writer(target) as f:
                f.write(b"half")
                raise RuntimeError("interrupted")

        assert not target.exists()
        assert list(tmp_path.iterdir()) == []

    def test_failure_keeps_previous_content(self, tmp_path):
        target = tmp_path / "1.png"
        target.write_bytes(b"complete")

        with pytest.raises(RuntimeError):
            with atomic_writer(target) as f:
                f.write(b"half")
                raise RuntimeError("interrupted")

        assert target.read_bytes() == b"complete"

    def test_missing_parent_raises_storage_error(self, tmp_path):
        with pytest.raises(StorageIOError):
            atomic_write_bytes(tmp_path / "nope" / "1.json", b"{}")

    def test_copy_is_byte_identical(self, tmp_path):
        src = tmp_path / "a.json"
        src.write_bytes(b'{"name": "caf\xc3\xa9"}')

        atomic_copy(src, tmp_path / "b.json")

        assert (tmp_path / "b.json").read_bytes() == src.read_bytes()

    def test_copy_missing_source(self, tmp_path):
        with pytest.raises(StorageIOError, match="Missing source"):
            atomic_copy(tmp_path / "a.json", tmp_path / "b.json")


class TestOutputTree:
    def test_layout(self, tmp_path):
        tree = OutputTree(tmp_path, "0xabc")

        assert tree.metadata_path(Category.ORIGINAL, 7) == tmp_path / "0xabc" / "original" / "7.json"
        assert tree.image_path("flipped", 7) == tmp_path / "0xabc" / "flipped" / "images" / "7.png"
        assert tree.publish_path == tmp_path / "0xabc" / "publish.json"
        assert tree.skipped_path == tmp_path / "0xabc" / "original" / "skipped.jsonl"

    def test_peek_does_not_create(self, tmp_path):
        tree = OutputTree(tmp_path, "0xabc")

        assert tree.peek(Category.ORIGINAL).is_empty
        assert not tree.root.exists()

    def test_list_metadata_sorted_numerically(self, tmp_path):
        tree = OutputTree(tmp_path, "0xabc")
        touch_metadata(tree.category_dir(Category.FLIPPED), "10.json", "2.json", "1.json", "skip.json")

        ids = [token_id for token_id, _ in tree.list_metadata(Category.FLIPPED)]

        assert ids == [1, 2, 10]

    def test_list_images(self, tmp_path):
        tree = OutputTree(tmp_path, "0xabc")
        tree.snapshot(Category.FLIPPED)
        for name in ("3.png", "1.png", "x.png", ".4.png.tmp"):
            (tree.images_dir(Category.FLIPPED) / name).write_bytes(b"x")

        assert [token_id for token_id, _ in tree.list_images(Category.FLIPPED)] == [1, 3]

    def test_skipped_round_trip(self, tmp_path):
        tree = OutputTree(tmp_path, "0xabc")
        tree.snapshot(Category.ORIGINAL)

        tree.record_skipped(4, "404")
        tree.record_skipped(9, "timeout")
        tree.record_skipped(4, "still 404")

        assert tree.load_skipped() == {4: "still 404", 9: "timeout"}
        lines = tree.skipped_path.read_text().splitlines()
        assert json.loads(lines[0]) == {"token_id": 4, "reason": "404"}

    def test_load_skipped_without_file(self, tmp_path):
        assert OutputTree(tmp_path, "0xabc").load_skipped() == {}

    def test_publish_record(self, tmp_path):
        tree = OutputTree(tmp_path, "0xabc")
        tree.root.mkdir(parents=True)
        result = PublishResult(
            images=PinResult("QmXoypizjW3WknFiJnKLwHCnL72vedxjQkDDP1mXWo6uco", "images", 2),
            metadata=PinResult("QmbWqxBEKC3P8tqsKc98xmWNzrzDtRLMiMPL8wBuTGsMnR", "metadata", 2),
        )

        tree.save_publish(result)
        loaded = tree.load_publish()

        assert loaded == result
        assert json.loads(tree.publish_path.read_text())["base_uri"] == (
            "ipfs://QmbWqxBEKC3P8tqsKc98xmWNzrzDtRLMiMPL8wBuTGsMnR/"
        )

    def test_load_publish_without_file(self, tmp_path):
        assert OutputTree(tmp_path, "0xabc").load_publish() is None
