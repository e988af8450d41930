"""
FastAPI REST API Layer for voice-proxy.

    - routes.py: Direct synthesis (/api/tts), /health, /metrics, error handlers
    - comments.py: Comment listing, cached audio, generation and cache control
    - articles.py: Article narration
    - schemas.py: Request Pydantic models
    - dependencies.py: Settings loading and service injection
"""
