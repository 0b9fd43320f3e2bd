"""Catalog, discovery and trust resolution."""
