"""
Dispatch layer: concurrent fan-out of one prompt to the selected providers.
"""

from multiprompt.dispatch.runner import DispatchReport, Dispatcher

__all__ = [
    "DispatchReport",
    "Dispatcher",
]
