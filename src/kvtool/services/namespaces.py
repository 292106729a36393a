"""Namespace directory: title-based lookup and lifecycle of KV namespaces."""

from typing import List, Optional

from kvtool.errors import DuplicateNamespaceError, NamespaceNotFoundError
from kvtool.logging_config import get_logger
from kvtool.models import Namespace
from kvtool.services.api import CloudflareClient

logger = get_logger(__name__)

NAMESPACES_PATH = "storage/kv/namespaces"
PAGE_SIZE = 20


class NamespaceDirectory:
    """Resolves namespace titles to identifiers and manages namespaces.

    Titles are unique only by convention; the remote store does not enforce
    it, so lookups treat more than one match as an error.

    Attributes:
        client: Open CloudflareClient
    """

    def __init__(self, client: CloudflareClient):
        self.client = client

    async def list(self) -> List[Namespace]:
        """Fetch every namespace, ordered by title.

        Pages are requested one at a time starting at page 1; the first page
        holding fewer than PAGE_SIZE items ends the listing.

        Returns:
            All namespaces in server-reported title order
        """
        namespaces: List[Namespace] = []
        page = 1

        while True:
            result = await self.client.request(
                NAMESPACES_PATH,
                params={
                    "page": page,
                    "per_page": PAGE_SIZE,
                    "order": "title",
                    "direction": "asc",
                },
            )
            items = [Namespace.model_validate(item) for item in result or []]
            namespaces.extend(items)

            if len(items) < PAGE_SIZE:
                break
            page += 1

        logger.debug(f"Listed {len(namespaces)} namespaces in {page} page(s)")
        return namespaces

    async def find(self, title: str) -> Optional[str]:
        """Look up the identifier of the namespace titled *title*.

        Returns:
            The namespace id, or None when no namespace has that title

        Raises:
            DuplicateNamespaceError: If several namespaces share the title
        """
        matches = [ns.id for ns in await self.list() if ns.title == title]

        if len(matches) > 1:
            raise DuplicateNamespaceError(title, matches)
        return matches[0] if matches else None

    async def resolve(self, title: str) -> str:
        """Like find(), but a missing title raises NamespaceNotFoundError."""
        namespace_id = await self.find(title)
        if namespace_id is None:
            raise NamespaceNotFoundError(title)
        return namespace_id

    async def create(self, title: str) -> str:
        """Create a namespace and return its new identifier.

        No check is made for an existing namespace with the same title.
        """
        result = await self.client.request(NAMESPACES_PATH, "POST", {"title": title})
        namespace = Namespace.model_validate(result)
        logger.info(f"Created namespace {title} ({namespace.id})")
        return namespace.id

    async def resolve_or_create(self, title: str) -> tuple[str, bool]:
        """Resolve *title*, creating the namespace if it does not exist.

        Returns:
            Tuple of (namespace id, whether it was created)
        """
        namespace_id = await self.find(title)
        if namespace_id is not None:
            return namespace_id, False
        return await self.create(title), True

    async def rename(self, src: str, dest: str) -> str:
        """Rename the namespace titled *src* to *dest*.

        The source is resolved before anything is written, so a missing
        source leaves the store untouched.

        Returns:
            Identifier of the renamed namespace
        """
        namespace_id = await self.resolve(src)
        await self.client.request(f"{NAMESPACES_PATH}/{namespace_id}", "PUT", {"title": dest})
        logger.info(f"Renamed namespace {src} to {dest} ({namespace_id})")
        return namespace_id

    async def delete(self, title: str) -> str:
        """Delete the namespace titled *title* and return its identifier."""
        namespace_id = await self.resolve(title)
        await self.client.request(f"{NAMESPACES_PATH}/{namespace_id}", "DELETE")
        logger.info(f"Deleted namespace {title} ({namespace_id})")
        return namespace_id
