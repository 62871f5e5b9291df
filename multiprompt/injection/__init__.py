"""
Injection script synthesis and the execution boundary.
"""

from multiprompt.injection.script_builder import (
    ScriptSynthesizer,
    escape_js_string,
    format_selector_array,
)
from multiprompt.injection.executor import (
    DryRunExecutor,
    ExecutionFault,
    InjectionOutcome,
    RemoteExecutor,
    ScriptExecutor,
)

__all__ = [
    "ScriptSynthesizer",
    "escape_js_string",
    "format_selector_array",
    "DryRunExecutor",
    "ExecutionFault",
    "InjectionOutcome",
    "RemoteExecutor",
    "ScriptExecutor",
]
