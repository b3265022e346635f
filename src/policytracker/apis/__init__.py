"""
Document sources for PolicyTracker.

The fetcher that downloads Executive Yuan replies from the Legislative Yuan
open-data API writes JSONL exports; this package reads them back as
Document objects with derived ids.

Available Sources:
    - JsonlDocumentSource: One or more JSONL exports, optionally merged so the
      last record per document wins

Usage Example:
    from policytracker.apis import JsonlDocumentSource

    source = JsonlDocumentSource(["data/legislative/2024.jsonl"])
    for document in source.iter_documents():
        print(document.id, document.subject)

Python Learning Notes:
    - __all__: Controls what's imported with 'from module import *'
    - Re-exports: Makes submodule classes available at package level
"""

from .base import Document, DocumentSource
from .legislative import JsonlDocumentSource, load_documents

__all__ = ["Document", "DocumentSource", "JsonlDocumentSource", "load_documents"]
