import shutil
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

from ai_fdocs.cache.io import parse_metadata_text, read_metadata_file, write_metadata_file
from ai_fdocs.cache.models import META_FILENAME, CacheMetadata
from ai_fdocs.cache.store import CacheStore
from ai_fdocs.cache.utils import is_latest_cache_fresh, is_version_better, split_name_version
from ai_fdocs.config.models import PackageConfig
from ai_fdocs.core.models import DocsArtifact, FetchedFile, ResolvedRef

NOW = datetime(2026, 3, 10, 15, 30, tzinfo=timezone.utc)


def _package() -> PackageConfig:
    return PackageConfig(repo="serde-rs/serde", ai_notes="Prefer derive macros.")


class CacheStoreSaveTests(unittest.TestCase):
    def test_save_writes_flattened_files_and_metadata(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = CacheStore(Path(tmp))
            files = [
                FetchedFile(path="README.md", source_url="https://raw.example/README.md", content="# Serde"),
                FetchedFile(path="docs/guide.md", source_url="https://raw.example/docs/guide.md", content="guide"),
            ]

            saved = store.save_package_files(
                "serde",
                "1.0.210",
                repo="serde-rs/serde",
                resolved=ResolvedRef(git_ref="v1.0.210", is_fallback=False),
                files=files,
                package_config=_package(),
                max_file_size_kb=200,
                source_kind="github",
                now=NOW,
            )

            package_dir = Path(tmp) / "serde@1.0.210"
            self.assertEqual(saved.files, ["README.md", "docs__guide.md"])
            self.assertEqual(saved.ai_notes, "Prefer derive macros.")
            self.assertTrue((package_dir / "docs__guide.md").is_file())
            readme = (package_dir / "README.md").read_text(encoding="utf-8")
            self.assertTrue(
                readme.startswith(
                    "<!-- AI-FDOCS: source=github.com/serde-rs/serde ref=v1.0.210 path=README.md fetched=2026-03-10 -->"
                )
            )

            meta = store.read_meta("serde", "1.0.210")
            self.assertEqual(meta.version, "1.0.210")
            self.assertEqual(meta.git_ref, "v1.0.210")
            self.assertEqual(meta.fetched_at, "2026-03-10")
            self.assertEqual(meta.source_kind, "github")
            self.assertFalse(meta.is_fallback)
            self.assertIs(meta.truncated, False)
            self.assertIsNone(meta.upstream_checked_at)

    def test_save_replaces_previous_entry(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = CacheStore(Path(tmp))
            package_dir = Path(tmp) / "serde@1.0.210"
            package_dir.mkdir(parents=True)
            (package_dir / "stale.md").write_text("old", encoding="utf-8")

            store.save_package_files(
                "serde",
                "1.0.210",
                repo="serde-rs/serde",
                resolved=ResolvedRef(git_ref="master", is_fallback=True),
                files=[FetchedFile(path="README.md", source_url="u", content="new")],
                package_config=_package(),
                max_file_size_kb=200,
                source_kind="github",
                now=NOW,
            )

            self.assertFalse((package_dir / "stale.md").exists())
            self.assertTrue(store.read_meta("serde", "1.0.210").is_fallback)

    def test_save_latest_api_markdown(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = CacheStore(Path(tmp))
            artifact = DocsArtifact(
                markdown="# tokio@1.40.0\n",
                docsrs_input_url="https://docs.rs/crate/tokio/1.40.0",
                truncated=True,
            )

            saved = store.save_latest_api_markdown(
                "tokio",
                "1.40.0",
                artifact=artifact,
                package_config=PackageConfig(),
                max_file_size_kb=200,
                now=NOW,
            )

            self.assertEqual(saved.files, ["API.md"])
            self.assertEqual(saved.source_kind, "docsrs")
            api = (Path(tmp) / "tokio@1.40.0" / "API.md").read_text(encoding="utf-8")
            self.assertIn("source=docs.rs ref=1.40.0 path=API.md", api)
            self.assertIn("url=https://docs.rs/crate/tokio/1.40.0", api)
            meta = store.read_meta("tokio", "1.40.0")
            self.assertEqual(meta.source_kind, "docsrs")
            self.assertEqual(meta.upstream_checked_at, "2026-03-10")
            self.assertEqual(meta.docsrs_input_url, "https://docs.rs/crate/tokio/1.40.0")
            self.assertTrue(meta.truncated)


class CacheStoreLookupTests(unittest.TestCase):
    def _write_meta(self, root: Path, dir_name: str, **fields) -> None:
        meta = CacheMetadata(**{"version": "1.0.0", "git_ref": "v1.0.0", "fetched_at": "2026-03-10", **fields})
        write_metadata_file(root / dir_name / META_FILENAME, meta)

    def test_is_cached_requires_matching_metadata_version(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            store = CacheStore(root)
            self._write_meta(root, "serde@1.0.0", version="1.0.0")
            self._write_meta(root, "serde@2.0.0", version="1.9.9")
            (root / "serde@3.0.0").mkdir()

            self.assertTrue(store.is_cached("serde", "1.0.0"))
            self.assertFalse(store.is_cached("serde", "2.0.0"))
            self.assertFalse(store.is_cached("serde", "3.0.0"))
            self.assertFalse(store.is_cached("serde", "4.0.0"))

    def test_is_cached_rejects_newer_schema(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            self._write_meta(root, "serde@1.0.0", schema_version=2)

            self.assertFalse(CacheStore(root).is_cached("serde", "1.0.0"))

    def test_undecodable_metadata_is_not_cached(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "serde@1.0.0").mkdir()
            (root / "serde@1.0.0" / META_FILENAME).write_bytes(b'version = "1.0.0"\xff\xfe')

            self.assertFalse(CacheStore(root).is_cached("serde", "1.0.0"))

    def test_is_cached_with_ttl(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            store = CacheStore(root)
            self._write_meta(root, "tokio@1.0.0", fetched_at="2026-03-10")

            self.assertTrue(store.is_cached("tokio", "1.0.0", ttl_hours=24, now=NOW))
            later = datetime(2026, 3, 11, 0, 30, tzinfo=timezone.utc)
            self.assertFalse(store.is_cached("tokio", "1.0.0", ttl_hours=24, now=later))

    def test_read_cached_info_lists_visible_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            self._write_meta(root, "serde@1.0.0", is_fallback=True, source_kind="github")
            (root / "serde@1.0.0" / "README.md").write_text("x", encoding="utf-8")

            info = CacheStore(root).read_cached_info("serde", "1.0.0", _package())

            self.assertEqual(info.files, ["README.md"])
            self.assertTrue(info.is_fallback)
            self.assertEqual(info.git_ref, "v1.0.0")

    def test_scan_existing_picks_highest_version(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            for name in ("serde@1.0.9", "serde@1.0.10", "tokio@0.2.0", "not-a-package"):
                (root / name).mkdir()

            existing = CacheStore(root).scan_existing()

            self.assertEqual(existing["serde"][0], "1.0.10")
            self.assertEqual(existing["tokio"][1], root / "tokio@0.2.0")
            self.assertEqual(set(existing), {"serde", "tokio"})


class CacheStorePruneTests(unittest.TestCase):
    def test_prune_removes_unconfigured_and_outdated_entries(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            for name in ("serde@1.0.0", "serde@0.9.0", "removed@1.0.0", "tokio@1.0.0"):
                (root / name).mkdir()
            (root / "_INDEX.md").write_text("index", encoding="utf-8")

            removed = CacheStore(root).prune(["serde", "tokio"], {"serde": "1.0.0"})

            self.assertEqual(sorted(removed), ["removed@1.0.0", "serde@0.9.0", "tokio@1.0.0"])
            self.assertTrue((root / "serde@1.0.0").is_dir())
            self.assertTrue((root / "_INDEX.md").is_file())

    def test_prune_continues_past_undeletable_entry(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            for name in ("locked@1.0.0", "removed@1.0.0"):
                (root / name).mkdir()
            real_rmtree = shutil.rmtree

            def rmtree(path, *args, **kwargs):
                if Path(path).name == "locked@1.0.0":
                    raise PermissionError("denied")
                real_rmtree(path, *args, **kwargs)

            with mock.patch("ai_fdocs.cache.store.shutil.rmtree", side_effect=rmtree):
                removed = CacheStore(root).prune([], {})

            self.assertEqual(removed, ["removed@1.0.0"])
            self.assertTrue((root / "locked@1.0.0").is_dir())

    def test_prune_on_missing_output_dir_is_noop(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(CacheStore(Path(tmp) / "missing").prune(["a"], {}), [])


class CacheUtilsTests(unittest.TestCase):
    def test_freshness_counts_from_midnight_and_rejects_garbage(self) -> None:
        self.assertTrue(is_latest_cache_fresh("2026-03-10", 24, NOW))
        self.assertFalse(is_latest_cache_fresh("2026-03-08", 24, NOW))
        self.assertFalse(is_latest_cache_fresh("yesterday", 24, NOW))

    def test_version_comparison(self) -> None:
        self.assertTrue(is_version_better("1.0.10", "1.0.9"))
        self.assertFalse(is_version_better("1.0.0", "1.0.0"))
        self.assertTrue(is_version_better("1.0.0", None))
        self.assertFalse(is_version_better("1.2.0", "1.10.0"))

    def test_split_name_version(self) -> None:
        self.assertEqual(split_name_version("serde@1.0.0"), ("serde", "1.0.0"))
        self.assertIsNone(split_name_version("serde"))


class MetadataIoTests(unittest.TestCase):
    def test_invalid_metadata_reads_as_none(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / META_FILENAME
            path.write_text('version = "1.0.0"\n', encoding="utf-8")

            self.assertIsNone(read_metadata_file(path))
            self.assertIsNone(read_metadata_file(Path(tmp) / "absent.toml"))

    def test_undecodable_metadata_reads_as_none(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / META_FILENAME
            path.write_bytes(b'version = "1.0.0"\xff\xfe')

            self.assertIsNone(read_metadata_file(path))

    def test_absent_optional_fields_decode_to_none(self) -> None:
        meta = parse_metadata_text('version = "1.0.0"\nfetched_at = "2026-03-10"\n')

        self.assertEqual(meta.schema_version, 1)
        self.assertIsNone(meta.source_kind)
        self.assertFalse(meta.is_fallback)


if __name__ == "__main__":
    unittest.main()
