"""
Path mapping and static file writes.
"""

import os
import stat
import tempfile
import unittest
from pathlib import Path

from crawler.path_mapper import StaticFileWriter, WriteError, path_to_output_path


class TestPathToOutputPath(unittest.TestCase):
    def test_mapping_rules(self):
        cases = [
            ("/", "/index.html"),
            ("/test", "/test/index.html"),
            ("/test/", "/test/index.html"),
            ("/test.php", "/test.php"),
            ("/sitemap.xml", "/sitemap.xml"),
            ("/a/b/page.HTML", "/a/b/page.HTML"),
            # unrecognized extensions become directories, preserved on purpose
            ("/test.xlsx", "/test.xlsx/index.html"),
        ]
        for site_path, expected in cases:
            with self.subTest(site_path=site_path):
                self.assertEqual(path_to_output_path(site_path), expected)

    def test_unrecognized_extension_is_logged(self):
        with self.assertLogs("crawler.path_mapper", level="INFO") as cm:
            path_to_output_path("/report.xlsx")
        self.assertIn("/report.xlsx/index.html", cm.output[0])


class TestStaticFileWriter(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dump = Path(self._tmp.name) / "static"
        self.writer = StaticFileWriter(self.dump)

    def tearDown(self):
        self._tmp.cleanup()

    def test_front_page(self):
        result = self.writer.write("/", "<html></html>")
        self.assertEqual(result, str(self.dump / "index.html"))
        self.assertEqual((self.dump / "index.html").read_text(encoding="utf-8"), "<html></html>")

    def test_seo_file(self):
        result = self.writer.write("/sitemap.xml", "<urlset/>")
        self.assertEqual(result, str(self.dump / "sitemap.xml"))
        self.assertTrue((self.dump / "sitemap.xml").is_file())

    def test_nested_directories_are_created(self):
        self.writer.write("/a/b/c/", "x")
        self.assertTrue((self.dump / "a" / "b" / "c" / "index.html").is_file())
        # existing directories are fine
        self.writer.write("/a/b/", "y")
        self.assertEqual((self.dump / "a" / "b" / "index.html").read_text(encoding="utf-8"), "y")

    def test_no_content_is_a_failure(self):
        self.assertIsNone(self.writer.write("/nothing/", None))
        self.assertFalse((self.dump / "nothing").exists())

    def test_empty_string_writes_zero_byte_file(self):
        result = self.writer.write("/empty/", "")
        self.assertIsNotNone(result)
        self.assertEqual(os.path.getsize(result), 0)

    def test_bytes_written_verbatim(self):
        payload = b"\x89PNG\r\n\x1a\n\x00"
        result = self.writer.write("/logo.png", payload)
        self.assertEqual(Path(result).read_bytes(), payload)

    def test_overwrite_leaves_no_temp_files(self):
        self.writer.write("/page/", "first")
        self.writer.write("/page/", "second")
        self.assertEqual(os.listdir(self.dump / "page"), ["index.html"])
        self.assertEqual((self.dump / "page" / "index.html").read_text(encoding="utf-8"), "second")

    def test_percent_encoded_path_is_decoded(self):
        self.writer.write("/caf%C3%A9/", "x")
        self.assertTrue((self.dump / "café" / "index.html").is_file())

    def test_unwritable_destination_raises(self):
        blocker = Path(self._tmp.name) / "blocker"
        blocker.write_text("not a directory")
        writer = StaticFileWriter(blocker / "static")
        with self.assertRaises(WriteError):
            writer.write("/", "<html></html>")

    def test_paths_outside_dump_directory_are_refused(self):
        for site_path in ("/../escaped/", "/../../escaped/index.html", "/%2e%2e/escaped/"):
            with self.subTest(site_path=site_path):
                with self.assertRaises(WriteError):
                    self.writer.write(site_path, "x")
        self.assertFalse((Path(self._tmp.name) / "escaped").exists())

    def test_written_files_use_umask_mode(self):
        umask = os.umask(0)
        os.umask(umask)
        result = self.writer.write("/", "hi")
        self.assertEqual(stat.S_IMODE(os.stat(result).st_mode), 0o666 & ~umask)

    def test_copy_static_file(self):
        source_root = Path(self._tmp.name) / "docroot"
        (source_root / "css").mkdir(parents=True)
        (source_root / "css" / "site.css").write_text("body{}")

        result = self.writer.copy_static_file("/css/site.css", source_root)
        self.assertEqual(Path(result).read_text(), "body{}")

    def test_copy_missing_static_file_raises(self):
        with self.assertRaises(WriteError):
            self.writer.copy_static_file("/missing.css", self._tmp.name)


if __name__ == "__main__":
    unittest.main()
