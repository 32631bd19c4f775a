"""
Maps canonical site paths to files under the dump directory and writes them.

Mapping rule:
- "/a/"          -> "/a/index.html"
- "/a/page.html" -> "/a/page.html"        (recognized extension)
- "/a/b"         -> "/a/b/index.html"
- "/a/b.xlsx"    -> "/a/b.xlsx/index.html" (unrecognized extension is a directory)
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote

from crawler.core import setup_logger
from crawler.policy import PathPolicy

logger = setup_logger("crawler.path_mapper")

# mkstemp creates 0600 files; exported files get the regular umask-derived mode
_UMASK = os.umask(0)
os.umask(_UMASK)
FILE_MODE = 0o666 & ~_UMASK


class WriteError(Exception):
    """Raised when an output file cannot be created or written."""
    pass


def path_to_output_path(site_path: str) -> str:
    """Site-relative output path for a canonical site path."""
    site_path = site_path or "/"
    if not site_path.startswith("/"):
        site_path = "/" + site_path

    if site_path.endswith("/"):
        return site_path + "index.html"

    if PathPolicy.has_static_extension(site_path):
        return site_path

    if PathPolicy.dotted_segment(site_path):
        # MappingAmbiguity: dotted segment outside the allow-list becomes a directory
        logger.info(f"[MAPPING] {site_path} has an unrecognized extension; writing {site_path}/index.html")
    return site_path + "/index.html"


class StaticFileWriter:
    """
    Writes fetched documents below dump_directory.
    Each write goes to a temp file in the target directory and is renamed into place.
    """

    def __init__(self, dump_directory: Union[str, Path]):
        self.dump_directory = Path(dump_directory)

    def destination(self, site_path: str) -> Path:
        """Output file for site_path; raises WriteError if it would land outside dump_directory."""
        relative = unquote(path_to_output_path(site_path)).lstrip("/")
        dest = self.dump_directory.joinpath(*relative.split("/"))
        root = self.dump_directory.resolve()
        if root not in dest.resolve().parents:
            raise WriteError(f"Refusing to write {site_path} outside {self.dump_directory}")
        return dest

    def write(self, site_path: str, content) -> Optional[str]:
        """
        Returns the written file path, or None when content is None ("nothing to write").
        An empty string or empty bytes is a legal zero-byte file.
        """
        if content is None:
            return None

        dest = self.destination(site_path)
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(dest.parent), prefix=".tmp-", suffix=".part")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.chmod(tmp, FILE_MODE)
                os.replace(tmp, dest)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise WriteError(f"Failed to write {dest} for {site_path}: {e}") from e

        logger.debug(f"[WRITE] {site_path} -> {dest} ({len(data)} bytes)")
        return str(dest)

    def copy_static_file(self, site_path: str, source_root: Union[str, Path]) -> str:
        """
        Copies a file of the host application's document root into the dump.
        Skips the copy when the destination is already as new as the source.
        """
        source = Path(source_root).joinpath(*unquote(site_path).lstrip("/").split("/"))
        if not source.is_file():
            raise WriteError(f"Static file source missing: {source}")

        dest = self.destination(site_path)
        if source.resolve() == dest.resolve():
            return str(dest)
        try:
            if dest.exists() and dest.stat().st_mtime >= source.stat().st_mtime:
                return str(dest)
            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(dest.parent), prefix=".tmp-", suffix=".part")
            os.close(fd)
            try:
                shutil.copy2(source, tmp)
                os.chmod(tmp, FILE_MODE)
                os.replace(tmp, dest)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise WriteError(f"Failed to copy {source} to {dest}: {e}") from e

        logger.debug(f"[COPY] {source} -> {dest}")
        return str(dest)
