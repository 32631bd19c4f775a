"""
Content rewriting: generator tag, URI rewriting and the optional passes.
"""

import unittest
from datetime import datetime, timezone

from crawler.clock import FixedClock
from crawler.core import APP_NAME, APP_VERSION
from rewriting import ContentRewriter, rewrite


class TestReplaceRelativeUri(unittest.TestCase):
    def setUp(self):
        self.rewriter = ContentRewriter("http://example.org", "http://example.org/static")

    def test_site_url_becomes_static_url(self):
        self.assertEqual(
            self.rewriter.replace_relative_uri("http://example.org/foo/bar/"),
            "http://example.org/static/foo/bar/",
        )

    def test_relative_attribute_gets_static_path(self):
        self.assertEqual(
            self.rewriter.replace_relative_uri('<a href="/foo/bar/"></a>'),
            '<a href="/static/foo/bar/"></a>',
        )

    def test_protocol_relative_is_untouched(self):
        content = '<a href="//example.test/foo/bar/"></a>'
        self.assertEqual(self.rewriter.replace_relative_uri(content), content)

    def test_protocol_relative_same_host_is_untouched(self):
        content = '<script src="//example.org/wp-includes/js/a.js"></script>'
        self.assertEqual(self.rewriter.replace_relative_uri(content), content)


class TestRewrite(unittest.TestCase):
    def test_path_base(self):
        content = (
            '<a href="http://example.org/about/">About</a>\n'
            "<img src='/wp-content/uploads/a.png'>\n"
            '<form action="/search/"></form>\n'
            '<link href="//fonts.test/css" rel="stylesheet">\n'
            '<a href="https://other.test/x">x</a>'
        )
        expected = (
            '<a href="/static/about/">About</a>\n'
            "<img src='/static/wp-content/uploads/a.png'>\n"
            '<form action="/static/search/"></form>\n'
            '<link href="//fonts.test/css" rel="stylesheet">\n'
            '<a href="https://other.test/x">x</a>'
        )
        self.assertEqual(rewrite(content, "example.org", "/static"), expected)

    def test_each_value_rewritten_once(self):
        self.assertEqual(
            rewrite('<a href="http://example.org/a/">', "example.org", "/static/"),
            '<a href="/static/a/">',
        )

    def test_host_match_is_case_insensitive(self):
        self.assertEqual(
            rewrite('<a href="http://EXAMPLE.org/a/">', "example.org", "/static"),
            '<a href="/static/a/">',
        )

    def test_lookalike_host_is_untouched(self):
        content = '<a href="http://example.org.evil.test/a/">'
        self.assertEqual(rewrite(content, "example.org", "/static"), content)

    def test_userinfo_lookalike_host_is_untouched(self):
        content = '<a href="http://example.org@evil.test/x">'
        self.assertEqual(rewrite(content, "example.org", "/static"), content)

    def test_prefixed_attribute_names_are_untouched(self):
        content = '<div data-href="/a/"></div>'
        self.assertEqual(rewrite(content, "example.org", "/static"), content)

    def test_sitemap_locations(self):
        content = "<url><loc>http://example.org/about/</loc></url>"
        self.assertEqual(
            rewrite(content, "example.org", "http://cdn.example.net/site"),
            "<url><loc>http://cdn.example.net/site/about/</loc></url>",
        )

    def test_root_base_leaves_relative_paths(self):
        content = '<a href="/a/">'
        self.assertEqual(rewrite(content, "example.org", "/"), content)

    def test_none_passes_through(self):
        self.assertIsNone(rewrite(None, "example.org", "/static"))


class TestGeneratorTag(unittest.TestCase):
    def setUp(self):
        self.rewriter = ContentRewriter("http://example.org", "/static")

    def test_rewrite_generator_tag(self):
        content = '<meta name="generator" content="WordPress 5.3" />'
        expected = f'<meta name="generator" content="WordPress 5.3 with {APP_NAME} ver.{APP_VERSION}" />'
        self.assertEqual(self.rewriter.rewrite_generator_tag(content), expected)

    def test_content_before_name(self):
        content = "<meta content='Hugo 0.1' name='generator'>"
        expected = f"<meta content='Hugo 0.1 with {APP_NAME} ver.{APP_VERSION}' name='generator'>"
        self.assertEqual(self.rewriter.rewrite_generator_tag(content), expected)

    def test_only_first_tag(self):
        content = '<meta name="generator" content="A"><meta name="generator" content="B">'
        result = self.rewriter.rewrite_generator_tag(content)
        self.assertEqual(result.count(APP_NAME), 1)
        self.assertTrue(result.endswith('<meta name="generator" content="B">'))

    def test_no_tag_is_noop(self):
        content = '<meta name="description" content="x">'
        self.assertEqual(self.rewriter.rewrite_generator_tag(content), content)


class TestOptionalPasses(unittest.TestCase):
    def setUp(self):
        self.clock = FixedClock(datetime(2019, 12, 23, 12, 34, 56, tzinfo=timezone.utc))

    def test_remove_link_tags(self):
        rewriter = ContentRewriter("http://example.org", "/static", strip_dynamic_links=True)
        content = (
            "<head>\n"
            '<link rel="pingback" href="http://example.org/xmlrpc.php">\n'
            '<link rel="EditURI" type="application/rsd+xml" href="http://example.org/xmlrpc.php?rsd" />\n'
            '<link rel="stylesheet" href="/style.css">\n'
            "</head>"
        )
        self.assertEqual(
            rewriter.rewrite(content),
            '<head>\n<link rel="stylesheet" href="/static/style.css">\n</head>',
        )

    def test_add_last_modified(self):
        rewriter = ContentRewriter("http://example.org", "/static", clock=self.clock, stamp_last_modified=True)
        result = rewriter.rewrite("<!DOCTYPE html>\n<html></html>")
        self.assertEqual(
            result,
            f"<!DOCTYPE html>\n<!-- Last-Modified: 2019-12-23 12:34:56 by {APP_NAME} ver.{APP_VERSION} -->"
            "\n<html></html>",
        )

    def test_add_last_modified_skips_non_html(self):
        rewriter = ContentRewriter("http://example.org", "/static", clock=self.clock)
        content = "<?xml version='1.0'?><urlset/>"
        self.assertEqual(rewriter.add_last_modified(content), content)


if __name__ == "__main__":
    unittest.main()
