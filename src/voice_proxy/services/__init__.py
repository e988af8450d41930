"""
voice-proxy Services Layer.

Business logic between the API layer and the generation core.

Components:
    - voice_service.py: VoiceService facade wiring provider, cache, store and storage
    - validators.py: Input validation functions
"""
from .voice_service import VoiceService

__all__ = ["VoiceService"]
