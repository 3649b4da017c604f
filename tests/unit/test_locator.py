import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "installers" / "bootstrap"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from senterm_bootstrap.errors import AmbiguousBinary, BinaryNotFound
from senterm_bootstrap.locator import archive_strategies, local_strategies, locate_binary


def _touch(path: Path, data: bytes = b"bin") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


class BinaryLocatorTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.strategies = archive_strategies("senterm", "senterm-linux-x86_64")

    def tearDown(self):
        self._tmp.cleanup()

    def test_root_wins(self):
        root_bin = _touch(self.root / "senterm")
        _touch(self.root / "release" / "senterm")
        found = locate_binary(self.root, self.strategies)
        self.assertEqual(found.path, root_bin)
        self.assertEqual(found.strategy, "root")

    def test_platform_subdir_before_release(self):
        expected = _touch(self.root / "senterm-linux-x86_64" / "senterm")
        _touch(self.root / "release" / "senterm")
        found = locate_binary(self.root, self.strategies)
        self.assertEqual(found.path, expected)
        self.assertEqual(found.strategy, "subdir:senterm-linux-x86_64")

    def test_release_subdir(self):
        expected = _touch(self.root / "release" / "senterm")
        self.assertEqual(locate_binary(self.root, self.strategies).path, expected)

    def test_recursive_fallback(self):
        expected = _touch(self.root / "dist" / "bin" / "senterm")
        _touch(self.root / "dist" / "README.md")
        found = locate_binary(self.root, self.strategies)
        self.assertEqual(found.path, expected)
        self.assertEqual(found.strategy, "recursive")

    def test_directory_named_like_binary_is_skipped(self):
        (self.root / "senterm").mkdir()
        expected = _touch(self.root / "senterm" / "bin" / "senterm")
        self.assertEqual(locate_binary(self.root, self.strategies).path, expected)

    def test_ambiguous_recursive_match(self):
        _touch(self.root / "a" / "senterm")
        _touch(self.root / "b" / "senterm")
        with self.assertRaises(AmbiguousBinary) as ctx:
            locate_binary(self.root, self.strategies)
        self.assertIn("a/senterm", str(ctx.exception))
        self.assertIn("b/senterm", str(ctx.exception))

    def test_not_found_includes_listing(self):
        _touch(self.root / "senterm-linux-x86_64.tar.gz")
        _touch(self.root / "docs" / "README.md")
        with self.assertRaises(BinaryNotFound) as ctx:
            locate_binary(self.root, self.strategies)
        self.assertNotIsInstance(ctx.exception, AmbiguousBinary)
        self.assertEqual(ctx.exception.listing, ("docs/README.md", "senterm-linux-x86_64.tar.gz"))
        self.assertIn("docs/README.md", str(ctx.exception))

    def test_local_strategies_check_parent_then_cwd(self):
        source = self.root / "scripts"
        source.mkdir()
        cwd = self.root / "elsewhere"
        expected = _touch(cwd / "senterm")
        found = locate_binary(source, local_strategies("senterm", source, cwd=cwd))
        self.assertEqual(found.path, expected)

        parent_bin = _touch(self.root / "senterm")
        found = locate_binary(source, local_strategies("senterm", source, cwd=cwd))
        self.assertEqual(found.path, parent_bin)


if __name__ == "__main__":
    unittest.main()
