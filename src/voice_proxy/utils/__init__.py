"""
Utility Modules for voice-proxy.

    - text.py: Whitespace normalization, previews, provider-side truncation
    - timeit.py: Performance measurement utilities
"""
