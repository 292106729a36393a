"""Services for kvtool: API transport, namespace directory, bulk transfer."""

from kvtool.services.api import CloudflareClient
from kvtool.services.namespaces import NamespaceDirectory
from kvtool.services.transfer import BulkTransfer

__all__ = ["BulkTransfer", "CloudflareClient", "NamespaceDirectory"]
