"""Pydantic models for Cloudflare KV API payloads."""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ApiErrorDetail(BaseModel):
    """A single error reported in an API envelope."""

    code: int
    message: str


class Envelope(BaseModel):
    """Standard Cloudflare API response wrapper."""

    success: bool
    errors: List[ApiErrorDetail] = Field(default_factory=list)
    messages: List[Any] = Field(default_factory=list)
    result: Any = None
    result_info: Optional[Dict[str, Any]] = None


class Namespace(BaseModel):
    """A KV namespace as reported by the namespace listing."""

    id: str
    title: str
    supports_url_encoding: bool = False


class KeyEntry(BaseModel):
    """Key listing record (a stored item without its value)."""

    name: str
    expiration: Optional[int] = None  # unix seconds
    metadata: Optional[Dict[str, Any]] = None


class KeyValue(BaseModel):
    """A key with its fetched value, ready for a bulk write."""

    key: str
    value: Any
    expiration: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_bulk_item(self) -> Dict[str, Any]:
        """Serialize for the bulk write endpoint.

        The bulk endpoint stores ``value`` as a string, so the JSON value is
        serialized here and parsed back on read.
        """
        item: Dict[str, Any] = {"key": self.key, "value": json.dumps(self.value)}
        if self.expiration is not None:
            item["expiration"] = self.expiration
        if self.metadata is not None:
            item["metadata"] = self.metadata
        return item


class TransferResult(BaseModel):
    """Outcome of a bulk operation."""

    source: str
    destination: str
    key_count: int
    created: bool = False
