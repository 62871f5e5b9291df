"""
Multi-provider prompt dispatch.

Sends one prompt to several chat providers at once and tracks each
delivery through a retrying status lifecycle.
"""

__version__ = "0.1.0"
