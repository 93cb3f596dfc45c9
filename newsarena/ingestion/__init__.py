"""
NewsArena Ingestion Module
==========================

RSS feed ingestion and content processing components.

This module handles:
- Feed fetching with bounded retries
- RSS 2.0 and Atom parsing
- Content cleaning, enrichment and validation
- In-batch and cross-run deduplication
- Per-source and multi-source ingestion runs
"""
