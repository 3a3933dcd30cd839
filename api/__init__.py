"""
ChatBI API
==========

FastAPI boundary for the ChatBI pipeline.
"""

__version__ = "0.1.0"
