# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import fsspec
from fsspec.implementations.local import LocalFileSystem

# GDAL virtual file system prefixes that map onto plain fsspec protocols
_VSI_PROTOCOLS = {
    "/vsis3/": "s3://",
    "/vsigs/": "gs://",
    "/vsiaz/": "az://",
    "/vsiadls/": "abfs://",
}

_VSICURL = "/vsicurl/"
_VSIZIP = "/vsizip/"


def is_local_fs(fs: fsspec.AbstractFileSystem) -> bool:
    """Check whether *fs* is a local filesystem."""
    return "file" in fs.protocol or isinstance(fs, LocalFileSystem)


def is_https_fs(fs: fsspec.AbstractFileSystem) -> bool:
    """Check whether *fs* is a HTTP(S) filesystem."""
    protocols = (fs.protocol,) if isinstance(fs.protocol, str) else fs.protocol
    return "https" in protocols or "http" in protocols


def normalize_uri(uri: str) -> str:
    """Translate a GDAL virtual file system path into an fsspec URL.

    Supported are ``/vsicurl/``, ``/vsis3/``, ``/vsigs/``, ``/vsiaz/``,
    ``/vsiadls/``, and ``/vsizip/``, including nested forms such as
    ``/vsizip//vsicurl/https://host/a.zip/b.tif``, which becomes
    ``zip://b.tif::https://host/a.zip``.

    Any other URI or path is returned unchanged.

    Args:
        uri: A path, URL, or GDAL virtual file system path.

    Returns:
        A URL or chained URL understood by ``fsspec.open()``.

    Raises:
        ValueError: if *uri* uses an unsupported GDAL prefix,
            or a ``/vsizip/`` path does not name an archive member.
    """
    if not uri.startswith("/vsi"):
        return uri
    if uri.startswith(_VSICURL):
        return uri[len(_VSICURL):]
    for prefix, protocol in _VSI_PROTOCOLS.items():
        if uri.startswith(prefix):
            return protocol + uri[len(prefix):]
    if uri.startswith(_VSIZIP):
        archive, member = _split_zip_path(uri[len(_VSIZIP):])
        return f"zip://{member}::{normalize_uri(archive)}"
    raise ValueError(f"unsupported GDAL virtual file system path {uri!r}")


def _split_zip_path(path: str) -> tuple[str, str]:
    if path.startswith("{"):
        end = path.find("}")
        if end < 0:
            raise ValueError(f"unbalanced braces in zip path {path!r}")
        archive, member = path[1:end], path[end + 1:]
    else:
        index = path.lower().find(".zip/")
        if index < 0:
            raise ValueError(f"zip path {path!r} must name an archive member")
        archive, member = path[: index + 4], path[index + 4:]
    member = member.lstrip("/")
    if not member:
        raise ValueError(f"zip path {path!r} must name an archive member")
    return archive, member
