"""
Ingestion — text extraction, chunking, embedding and persistence.

This package turns one uploaded document (PDF, plain text, Markdown …)
into a persisted unit: paragraph-aligned chunks, each carrying its
embedding, written to the document store in a single atomic save.
"""
