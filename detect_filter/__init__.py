"""Real-time video-frame classifier for host media pipelines."""

__version__ = "0.1.0"
