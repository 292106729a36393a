"""kvtool - Cloudflare Workers KV namespace management.

This package provides tools for:
- Listing, creating, renaming and deleting KV namespaces by title
- Copying and clearing namespace contents in bulk
- Dumping namespaces to (and loading them from) local directories
"""

__version__ = "0.3.0"
