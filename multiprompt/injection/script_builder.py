"""
Injection script synthesis.

Turns a prompt and a provider's selector fallback chains into a
self-contained JavaScript snippet. The snippet evaluates to a Promise
resolving to an InjectionOutcome-shaped object:

    {success, element_found, submit_triggered, error_message}

Rendering goes through a Jinja2 template with two filters that produce
JavaScript literals, so the output is byte-identical for identical
inputs and the prompt can never break out of its string literal.
"""

from __future__ import annotations

from collections.abc import Sequence

from jinja2 import BaseLoader, Environment

from multiprompt.errors import ValidationError
from multiprompt.providers.config import ProviderSelectorConfig

DEFAULT_SETTLE_MS = 100

# Backslash is handled by the same table, so ordering does not matter.
_JS_ESCAPES = {
    ord("\\"): "\\\\",
    ord('"'): '\\"',
    ord("'"): "\\'",
    ord("\n"): "\\n",
    ord("\r"): "\\r",
    ord("\t"): "\\t",
    0x2028: "\\u2028",
    0x2029: "\\u2029",
}
for _code in range(0x20):
    _JS_ESCAPES.setdefault(_code, f"\\u{_code:04x}")
del _code


def escape_js_string(text: str) -> str:
    """Return ``text`` as a double-quoted JavaScript string literal."""
    return '"' + text.translate(_JS_ESCAPES) + '"'


def format_selector_array(selectors: Sequence[str]) -> str:
    """Return selectors as a JavaScript array literal, order preserved."""
    return "[" + ", ".join(escape_js_string(s) for s in selectors) + "]"


INJECTION_TEMPLATE = """\
(async function() {
    const inputSelectors = {{ input_selectors | js_array }};
    const submitSelectors = {{ submit_selectors | js_array }};
    const prompt = {{ prompt | js_string }};
    const settleMs = {{ settle_ms }};

    function firstMatch(selectors) {
        for (let i = 0; i < selectors.length; i++) {
            const element = document.querySelector(selectors[i]);
            if (element) {
                return element;
            }
        }
        return null;
    }

    try {
        const inputElement = firstMatch(inputSelectors);
        if (!inputElement) {
            return {
                success: false,
                element_found: false,
                submit_triggered: false,
                error_message: 'Input element not found. Tried selectors: ' + inputSelectors.join(', ')
            };
        }

        const tag = inputElement.tagName;
        if (tag === 'TEXTAREA' || tag === 'INPUT') {
            inputElement.value = prompt;
        } else if (inputElement.isContentEditable || inputElement.getAttribute('contenteditable') === 'true') {
            inputElement.textContent = prompt;
        } else {
            inputElement.value = prompt;
        }
        inputElement.dispatchEvent(new Event('input', { bubbles: true }));
        inputElement.dispatchEvent(new Event('change', { bubbles: true }));

        await new Promise(function(resolve) { setTimeout(resolve, settleMs); });

        const submitElement = firstMatch(submitSelectors);
        if (!submitElement) {
            return {
                success: false,
                element_found: true,
                submit_triggered: false,
                error_message: 'Submit button not found. Tried selectors: ' + submitSelectors.join(', ')
            };
        }

        submitElement.click();
        return {
            success: true,
            element_found: true,
            submit_triggered: true,
            error_message: null
        };
    } catch (error) {
        return {
            success: false,
            element_found: false,
            submit_triggered: false,
            error_message: String(error && error.message ? error.message : error)
        };
    }
})();
"""


class ScriptSynthesizer:
    """
    Build injection scripts from selector chains and a prompt.

    Usage:
        synth = ScriptSynthesizer()
        script = synth.build(["textarea"], ["button[type='submit']"], "Hello")
        script = synth.build_for(provider_config, "Hello")
    """

    def __init__(self, settle_ms: int = DEFAULT_SETTLE_MS) -> None:
        if settle_ms < 0:
            raise ValidationError("settle_ms must not be negative")
        self.settle_ms = int(settle_ms)
        self._jinja_env = Environment(
            loader=BaseLoader(),
            autoescape=False,
            keep_trailing_newline=True,
        )
        self._jinja_env.filters["js_string"] = escape_js_string
        self._jinja_env.filters["js_array"] = format_selector_array
        self._template = self._jinja_env.from_string(INJECTION_TEMPLATE)

    def build(
        self,
        input_selectors: Sequence[str],
        submit_selectors: Sequence[str],
        prompt: str,
    ) -> str:
        """Render the injection script.

        Raises:
            ValidationError: If either selector chain is empty.
        """
        if not input_selectors:
            raise ValidationError("input_selectors cannot be empty")
        if not submit_selectors:
            raise ValidationError("submit_selectors cannot be empty")

        return self._template.render(
            input_selectors=list(input_selectors),
            submit_selectors=list(submit_selectors),
            prompt=prompt,
            settle_ms=self.settle_ms,
        )

    def build_for(self, config: ProviderSelectorConfig, prompt: str) -> str:
        return self.build(config.input_selectors, config.submit_selectors, prompt)
