"""
ai-ready: plugin marketplace discovery and settings sync.
"""

__version__ = "2.0.0"
