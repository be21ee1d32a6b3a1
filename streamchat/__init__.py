"""
streamchat - a streaming chat client for OpenAI-compatible completion services.

The interesting part lives in ``streamchat.llm.streaming``: an incremental
SSE decoder that turns arbitrarily chunked network reads into a growing
assistant message.
"""

__version__ = "0.1.0"
