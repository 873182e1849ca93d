"""
ClipForge - Short-form video generation and publishing engine.

A backend system that turns a topic into a finished short video with support for:
- Multi-step generation pipeline (script, scene plan, voiceover, clips, assembly)
- Synchronous and webhook-driven asynchronous video providers
- Scheduled publishing to social platforms with bounded retries
- Async task processing with Celery
"""

__version__ = "0.1.0"
