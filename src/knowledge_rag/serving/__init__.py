"""
Serving — FastAPI application exposing ingestion, listing and querying.

This module exposes the knowledge base over HTTP so it can be deployed as
a standalone container behind any chat front end.
"""
