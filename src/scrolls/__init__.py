"""
Scrolls: the Scrolls of Skelos, a local note archive.

An interactive terminal tool that provides:
- Text scrolls with tags
- Screen-capture scrolls backed by the host's screenshot program
- Search, editing and a single JSON archive on local disk
"""

__version__ = "0.1.0"
