"""Bulk transfer engine for KV namespaces.

Enumerates keys, fetches their values concurrently, and writes the result
to another namespace (bulk upsert), to a local directory (one file per key),
or removes every key (bulk delete).

Per-key work runs under a semaphore sized by ``KvConfig.concurrency``. The
first failing task fails the whole operation: its siblings are cancelled
and no partial result is returned.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from kvtool.errors import KeyNameTooLongError, KvToolError, MissingValueError
from kvtool.logging_config import get_logger
from kvtool.models import KeyEntry, KeyValue, TransferResult
from kvtool.services.api import CloudflareClient, namespace_path, value_path
from kvtool.services.filenames import escape_key_filename, unescape_key_filename
from kvtool.services.namespaces import NamespaceDirectory

logger = get_logger(__name__)

KEYS_PAGE_LIMIT = 1000
# Cloudflare accepts at most 10,000 pairs per bulk write/delete request
BULK_BATCH_SIZE = 10_000
# Common per-component limit (ext4, APFS, NTFS)
MAX_FILENAME_BYTES = 255

T = TypeVar("T")
R = TypeVar("R")


async def run_bounded(
    items: Iterable[T], worker: Callable[[T], Awaitable[R]], limit: int
) -> List[R]:
    """Run *worker* over *items* with at most *limit* running at once.

    Results come back in input order. If any worker raises, the remaining
    tasks are cancelled and awaited before the exception propagates.
    """
    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    tasks = [asyncio.create_task(run(item)) for item in items]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _batches(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class BulkTransfer:
    """Copies, clears, dumps and loads namespace contents.

    Attributes:
        client: Open CloudflareClient
        directory: NamespaceDirectory sharing the same client
        concurrency: Maximum simultaneous per-key requests or file operations
    """

    def __init__(
        self,
        client: CloudflareClient,
        directory: Optional[NamespaceDirectory] = None,
        concurrency: Optional[int] = None,
    ):
        self.client = client
        self.directory = directory or NamespaceDirectory(client)
        self.concurrency = concurrency or client.config.concurrency

    async def list_keys(self, namespace_id: str) -> List[KeyEntry]:
        """Enumerate every key in a namespace.

        Pages are followed by cursor until the returned cursor is empty. A
        page may hold fewer than ``limit`` keys and still carry a cursor.
        """
        keys: List[KeyEntry] = []
        cursor: Optional[str] = None

        while True:
            params: Dict[str, Any] = {"limit": KEYS_PAGE_LIMIT}
            if cursor:
                params["cursor"] = cursor

            envelope = await self.client.request_envelope(
                namespace_path(namespace_id, "keys"), params=params
            )
            page = [KeyEntry.model_validate(item) for item in envelope.result or []]
            keys.extend(page)

            cursor = (envelope.result_info or {}).get("cursor")
            if not cursor:
                break

        logger.debug(f"Listed {len(keys)} keys in namespace {namespace_id}")
        return keys

    async def fetch_value(self, namespace_id: str, entry: KeyEntry) -> KeyValue:
        """Fetch one key's value from the namespace it was listed in."""
        value = await self.client.read_raw(value_path(namespace_id, entry.name))
        if value is None or value == "":
            raise MissingValueError(entry.name)
        return KeyValue(
            key=entry.name,
            value=value,
            expiration=entry.expiration,
            metadata=entry.metadata,
        )

    async def fetch_all_values(
        self, namespace_id: str, keys: Optional[List[KeyEntry]] = None
    ) -> List[KeyValue]:
        """Fetch the value of every key in a namespace.

        Args:
            namespace_id: Namespace to read from
            keys: Previously listed keys (listed afresh when omitted)

        Returns:
            One KeyValue per key, in listing order

        Raises:
            MissingValueError: If any key has no value
            ApiError: If any value read fails
        """
        if keys is None:
            keys = await self.list_keys(namespace_id)

        logger.info(f"Fetching {len(keys)} values from namespace {namespace_id}")
        return await run_bounded(
            keys, lambda entry: self.fetch_value(namespace_id, entry), self.concurrency
        )

    async def put_values(self, namespace_id: str, pairs: Sequence[KeyValue]) -> None:
        """Bulk upsert *pairs* into a namespace."""
        for batch in _batches(pairs, BULK_BATCH_SIZE):
            await self.client.request(
                namespace_path(namespace_id, "bulk"),
                "PUT",
                [pair.to_bulk_item() for pair in batch],
            )
        logger.info(f"Wrote {len(pairs)} keys to namespace {namespace_id}")

    async def delete_keys(self, namespace_id: str, names: Sequence[str]) -> None:
        """Bulk delete *names* from a namespace."""
        for batch in _batches(names, BULK_BATCH_SIZE):
            await self.client.request(namespace_path(namespace_id, "bulk"), "DELETE", list(batch))
        logger.info(f"Deleted {len(names)} keys from namespace {namespace_id}")

    async def copy(self, src: str, dest: str) -> TransferResult:
        """Copy every key of namespace *src* into *dest*.

        *dest* is created when no namespace has that title. Keys already in
        *dest* that are absent from *src* are left alone.
        """
        src_id = await self.directory.resolve(src)
        pairs = await self.fetch_all_values(src_id)

        dest_id, created = await self.directory.resolve_or_create(dest)
        if pairs:
            await self.put_values(dest_id, pairs)

        logger.info(f"Copied {len(pairs)} keys from {src} to {dest}")
        return TransferResult(source=src, destination=dest, key_count=len(pairs), created=created)

    async def clear(self, title: str) -> TransferResult:
        """Delete every key in namespace *title*."""
        namespace_id = await self.directory.resolve(title)
        names = [entry.name for entry in await self.list_keys(namespace_id)]

        if names:
            await self.delete_keys(namespace_id, names)

        logger.info(f"Cleared {len(names)} keys from {title}")
        return TransferResult(source=title, destination=title, key_count=len(names))

    async def dump(self, title: str, directory: Path) -> TransferResult:
        """Write every key of namespace *title* to *directory*.

        Each key becomes one file named by escape_key_filename() holding the
        JSON-serialized value. The directory is created if needed.

        Raises:
            KeyNameTooLongError: If a key's file name would exceed
                MAX_FILENAME_BYTES (checked before any value is fetched)
            KvToolError: If the directory or a file cannot be written
        """
        namespace_id = await self.directory.resolve(title)
        keys = await self.list_keys(namespace_id)

        for entry in keys:
            length = len(escape_key_filename(entry.name).encode("utf-8"))
            if length > MAX_FILENAME_BYTES:
                raise KeyNameTooLongError(entry.name, length, MAX_FILENAME_BYTES)

        pairs = await self.fetch_all_values(namespace_id, keys)

        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise KvToolError(f"Cannot create {directory}: {e}") from e
        loop = asyncio.get_running_loop()

        async def write(pair: KeyValue) -> None:
            path = directory / escape_key_filename(pair.key)
            try:
                await loop.run_in_executor(
                    None, lambda: path.write_text(json.dumps(pair.value), encoding="utf-8")
                )
            except OSError as e:
                raise KvToolError(f"Cannot write {path}: {e}") from e

        await run_bounded(pairs, write, self.concurrency)

        logger.info(f"Dumped {len(pairs)} keys from {title} to {directory}")
        return TransferResult(source=title, destination=str(directory), key_count=len(pairs))

    async def load(self, title: str, directory: Path) -> TransferResult:
        """Upload a dump directory into namespace *title*.

        Every regular, non-hidden file is read as one key (name unescaped,
        contents parsed as JSON). The namespace is created if needed.
        """
        if not directory.is_dir():
            raise KvToolError(f"Dump directory not found: {directory}")

        try:
            files = sorted(
                path
                for path in directory.iterdir()
                if path.is_file() and not path.name.startswith(".")
            )
        except OSError as e:
            raise KvToolError(f"Cannot read {directory}: {e}") from e
        loop = asyncio.get_running_loop()

        async def read(path: Path) -> KeyValue:
            try:
                text = await loop.run_in_executor(None, lambda: path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError) as e:
                raise KvToolError(f"Cannot read {path}: {e}") from e
            try:
                value = json.loads(text)
            except ValueError as e:
                raise KvToolError(f"Invalid JSON in {path}: {e}") from e
            return KeyValue(key=unescape_key_filename(path.name), value=value)

        pairs = await run_bounded(files, read, self.concurrency)

        namespace_id, created = await self.directory.resolve_or_create(title)
        if pairs:
            await self.put_values(namespace_id, pairs)

        logger.info(f"Loaded {len(pairs)} keys from {directory} into {title}")
        return TransferResult(
            source=str(directory), destination=title, key_count=len(pairs), created=created
        )

    async def list_bindings(self, project: str) -> Dict[str, str]:
        """Read the production KV bindings of a Pages project.

        Returns:
            Mapping of bound variable name to namespace id, sorted by name
        """
        result = await self.client.request(f"pages/projects/{project}") or {}
        production = (result.get("deployment_configs") or {}).get("production") or {}
        bindings = production.get("kv_namespaces") or {}

        return {
            name: (binding or {}).get("namespace_id", "")
            for name, binding in sorted(bindings.items())
        }
