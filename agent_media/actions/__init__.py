"""
Caller-facing media actions.

    from agent_media.actions import image
    result = await image.resize("photo.jpg", width=800)
"""

from . import audio, image, video

__all__ = ["audio", "image", "video"]
