"""
webrender: renders web pages to PNG screenshots or PDF documents over HTTP by
driving a headless Chromium.
"""

__version__ = "0.1.0"
