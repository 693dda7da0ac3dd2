"""Unit tests for artifact persistence."""

from datetime import datetime
from pathlib import Path

import pytest

from torfetch.errors import PersistenceError
from torfetch.pipeline.storage import ArtifactStore, artifact_key, safe_name

STAMP = datetime(2024, 3, 9, 14, 5, 7)


class TestNaming:

    def test_safe_name_strips_scheme_and_separators(self):
        assert safe_name("https://example.com/a/b") == "example.com_a_b"
        assert safe_name("http://host:8080/x") == "host_8080_x"

    def test_onion_address(self):
        assert safe_name("http://abcdefghijklmnop.onion/") == "abcdefghijklmnop.onion_"

    def test_artifact_key_includes_timestamp(self):
        assert artifact_key("http://example.test", STAMP, "html") == "example.test_20240309_140507.html"


class TestArtifactStore:

    def test_collections_under_root(self, tmp_path):
        store = ArtifactStore(tmp_path)

        assert store.html_directory == tmp_path / "scraped_data"
        assert store.screenshot_directory == tmp_path / "screenshots"

    def test_from_config(self, sample_config):
        store = ArtifactStore.from_config(sample_config)

        assert store.html_directory == Path(sample_config.output_directory) / "scraped_data"
        assert store.screenshot_directory == Path(sample_config.output_directory) / "screenshots"

    def test_save_html_creates_directory(self, tmp_path):
        store = ArtifactStore(tmp_path)

        path = store.save_html("http://example.test/page", "<html>ü</html>", STAMP)

        assert path == tmp_path / "scraped_data" / "example.test_page_20240309_140507.html"
        assert path.read_text(encoding="utf-8") == "<html>ü</html>"

    def test_save_screenshot(self, tmp_path):
        store = ArtifactStore(tmp_path)

        path = store.save_screenshot("http://example.test", b"\x89PNG", STAMP)

        assert path == tmp_path / "screenshots" / "example.test_20240309_140507.png"
        assert path.read_bytes() == b"\x89PNG"

    def test_custom_collection_names(self, tmp_path):
        store = ArtifactStore(tmp_path, html_collection="pages", screenshot_collection="shots")

        assert store.save_html("http://a.test", "x", STAMP).parent == tmp_path / "pages"

    def test_directory_creation_failure(self, tmp_path):
        blocker = tmp_path / "scraped_data"
        blocker.write_text("not a directory")
        store = ArtifactStore(tmp_path)

        with pytest.raises(PersistenceError) as exc_info:
            store.save_html("http://a.test", "x", STAMP)

        assert exc_info.value.path == str(blocker)

    def test_write_failure(self, tmp_path):
        store = ArtifactStore(tmp_path)
        target = store.screenshot_directory / artifact_key("http://a.test", STAMP, "png")
        target.mkdir(parents=True)

        with pytest.raises(PersistenceError, match="could not write"):
            store.save_screenshot("http://a.test", b"x", STAMP)
