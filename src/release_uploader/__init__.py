"""
Release asset uploader.

Uploads local files as release assets: small files in a single stream
request, larger files through a multipart session with parallel part PUTs
directly to storage.
"""

__version__ = "0.1.0"
