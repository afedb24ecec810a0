"""
Model output sanitization for streamed and completed OCR results.
"""

import re

THINK_SPAN_RE = re.compile(r"<think>[\s\S]*?</think>")
FENCE = "```"
_TRAILING_BACKTICKS_RE = re.compile(r"`+$")


def strip_think_spans(text: str) -> str:
    """Remove closed <think>...</think> spans. An unclosed <think> is left visible."""
    return THINK_SPAN_RE.sub("", text)


def sanitize_for_display(buffer: str) -> str:
    """
    Derive the text to show for a partially received buffer.

    Recomputed over the whole buffer on every fragment. An opening fence
    line hides the display until its newline arrives; any trailing run of
    backticks is treated as a closing fence and dropped.
    """
    if not buffer:
        return ""
    s = strip_think_spans(buffer).lstrip()

    if s.startswith(FENCE):
        idx = s.find("\n")
        if idx == -1:
            return ""
        s = s[idx + 1 :]

    s = _TRAILING_BACKTICKS_RE.sub("", s)
    return s.rstrip()


def finalize(buffer: str) -> str:
    """
    Produce the final cleaned text once the stream is complete.

    Unlike sanitize_for_display, the fence is only removed when the text
    both starts and ends with one. The pass repeats until the text stops
    changing, so nested wrappers are fully unwrapped and finalize(finalize(x))
    == finalize(x). This includes a code block that is the entire body of
    fenced Markdown output: "```markdown\\n```python\\nx\\n```\\n```" becomes "x".
    """
    if not buffer:
        return ""
    s = buffer
    while True:
        cleaned = _finalize_once(s)
        if cleaned == s:
            return cleaned
        s = cleaned


def _finalize_once(text: str) -> str:
    s = strip_think_spans(text).strip()
    if s.startswith(FENCE) and s.endswith(FENCE):
        idx = s.find("\n")
        if idx != -1:
            s = s[idx + 1 : len(s) - 3].strip()
    return s
