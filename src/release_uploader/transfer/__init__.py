"""
Multipart transfer engine.

Modules:
    progress: Byte accounting and status lines
    chunks: Concurrent direct-to-storage part uploads
    coordinator: Begin/upload/commit/cancel state machine
"""
