"""Deduplication domain: model, similarity, scanning, review and merging."""
