"""
Local media processing.

- raster: Pillow image operations (resize, extend, crop, encode)
- ffmpeg: audio extraction through the ffmpeg binary
"""
