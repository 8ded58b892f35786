"""Bookshare - Services Package

This package contains service modules for external integrations:
- Media hosting (Cloudinary) service
- Image preparation helpers
- HTTP client abstraction
"""
