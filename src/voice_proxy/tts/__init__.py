"""
Voice Generation Core.

    - voices.py: Speaker and language enums, voice id mapping
    - chunker.py: Sentence-respecting text chunking
    - provider.py: Remote voice-cloning client with retries and mock mode
    - cache.py: In-memory audio cache and in-flight set
    - storage.py: Blob storage for narrated audio
    - coordinator.py: Per-subject generation and article narration
    - batch.py: Warmup batches over recent subjects
"""
