"""
agent-media: media actions for agents and scripts.

Image, audio and video actions run through a registry of pluggable
providers (local Pillow/FFmpeg processing, Hugging Face transformers
pipelines and remote inference APIs) and always return a JSON-ready
result envelope.
"""

__version__ = "0.1.0"
