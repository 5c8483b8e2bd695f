"""
Configuration for terrain synthesis and feature extraction.
"""

from .config import Settings, settings

__all__ = ['Settings', 'settings']
