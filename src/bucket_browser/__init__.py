"""Bucket browser backend: bucket listing, sidecar metadata facets and a live listing feed."""

__version__ = "1.0.0"
