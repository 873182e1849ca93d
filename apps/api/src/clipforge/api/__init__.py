"""
API package for ClipForge.
"""
