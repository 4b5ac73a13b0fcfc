"""
Framebuffer mode reconciliation engine.
"""
