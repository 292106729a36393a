"""Mapping between KV key names and dump file names.

Keys may contain any character, including path separators, so every byte
outside ``[A-Za-z0-9._~-]`` is percent-encoded. A leading ``.`` is encoded
as well, which keeps ``.``/``..`` and hidden-file names out of dumps.
"""

from urllib.parse import quote, unquote


def escape_key_filename(key: str) -> str:
    """Return the file name used to store *key* in a dump directory."""
    if not key:
        raise ValueError("Key name must not be empty")

    name = quote(key, safe="")
    if name.startswith("."):
        name = "%2E" + name[1:]
    return name


def unescape_key_filename(name: str) -> str:
    """Inverse of escape_key_filename()."""
    return unquote(name)
