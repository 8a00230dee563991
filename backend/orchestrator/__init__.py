"""
Job orchestration queue for the content-generation pipeline.

Tracks image, clip, lesson, chat and news-content jobs from submission
through prompt building, generation, narration and delivery, and archives
them once they finish.
"""

__version__ = "0.1.0"
