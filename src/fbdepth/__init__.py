"""
fbdepth - set the framebuffer bitdepth, rotation and night mode on eInk devices.
"""

__version__ = "1.0.0"
