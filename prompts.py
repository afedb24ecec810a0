"""
Recognition styles, modes, and the instruction text sent with each request.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List


class OcrStyle(str, Enum):
    TEXT = "t"
    MARKDOWN = "md"
    LATEX = "f"
    TABLE = "table"
    JSON = "json"
    DESC = "desc"


class OcrMode(str, Enum):
    STRICT = "strict"
    ENHANCE = "enhance"


@dataclass(frozen=True)
class OcrOption:
    """A selectable recognition style."""

    id: OcrStyle
    label: str
    description: str


OCR_OPTIONS: List[OcrOption] = [
    OcrOption(OcrStyle.TEXT, "Plain Text", "Extract raw text directly."),
    OcrOption(OcrStyle.MARKDOWN, "Markdown", "Preserve formatting (headers, lists)."),
    OcrOption(OcrStyle.LATEX, "Math / LaTeX", "Convert formulas to LaTeX."),
    OcrOption(OcrStyle.TABLE, "Table", "Convert grids to Markdown tables."),
    OcrOption(OcrStyle.JSON, "JSON", "Structure data as JSON."),
    OcrOption(OcrStyle.DESC, "Description", "Detailed visual explanation."),
]

MODE_LABELS: Dict[OcrMode, str] = {
    OcrMode.STRICT: "Strict - faithful output, no hallucinations",
    OcrMode.ENHANCE: "Enhance - repair obvious errors, mark inferred text",
}


STYLE_PROMPTS: Dict[OcrStyle, str] = {
    OcrStyle.TEXT: """
Transcribe all legible text exactly as it appears in the image.
Preserve line breaks, spacing, punctuation, and casing.
Do not add any explanations, conversational filler, or markdown unless it is literally present in the image.
Return ONLY the raw text.
""",
    OcrStyle.MARKDOWN: """
Transcribe the content into Markdown with minimal transformation.
Only use headings, lists, bold/italic, links, and code blocks if they are clearly indicated in the image.
Preserve the original reading order and line breaks as much as possible.
If some text is illegible, keep its position and use '□' as a placeholder.
Return ONLY the Markdown content (no code fences).
""",
    OcrStyle.LATEX: """
Transcribe the content, using LaTeX ONLY for mathematical expressions.
Use $...$ for inline math and $$...$$ for displayed equations when clearly indicated.
Keep surrounding non-math text as plain text and preserve line breaks.
If any symbol/character is illegible, use '□' in its place (do not guess).
Return ONLY the mixed plain text + LaTeX content (no code fences).
""",
    OcrStyle.TABLE: """
If the image contains a table, transcribe it using Markdown table syntax.
Preserve row order and keep cell text exactly as seen.
Only create a table when column boundaries are clear; otherwise, output the rows as plain text lines in order.
If any cell text is illegible, use '□' as a placeholder (do not guess).
Return ONLY the content (no code fences).
""",
    OcrStyle.JSON: """
Extract ONLY the structured fields that are explicitly visible in the image (receipts, forms, or key-value pairs).
Output a valid JSON object (double quotes, no trailing commas). Use lowerCamelCase for keys.
Do NOT invent keys or values. Do NOT infer missing fields.
If a value is illegible or uncertain, use null.
Return ONLY the JSON string (no markdown, no code fences).
""",
    OcrStyle.DESC: """
Describe the image in detail: layout, main objects, colors, and any visible text (quote text verbatim when possible).
If something is unclear, say it is unclear or use cautious language (e.g., "possibly", "appears to").
Do not fabricate specific details that are not visible.
Return ONLY the description.
""",
}


MODE_PROMPTS: Dict[OcrMode, str] = {
    OcrMode.STRICT: """
You are an OCR engine. Transcribe content from the image faithfully.
Rules:
- Do NOT invent, guess, or auto-correct.
- Preserve line breaks, spacing, punctuation, and casing as seen.
- If something is illegible, output '□' (use one '□' for unknown length).
- Output ONLY the requested content. No explanations. No code fences.
""",
    OcrMode.ENHANCE: """
You are an OCR assistant focused on producing clean, usable text.
Rules:
- Ignore watermark/overlay text that is clearly non-content (repeated, semi-transparent, crossing the page).
- You may repair obvious OCR errors and reconnect broken lines.
- If you infer missing/unclear text, wrap the inferred part in ⟦ ⟧.
- For JSON output: NEVER use ⟦ ⟧ inside JSON; use null for uncertain values and do not infer missing fields.
- Do NOT add new information beyond what can be reasonably inferred from visible context.
- Output ONLY the requested content. No explanations. No code fences.
""",
}


MODE_SAMPLING: Dict[OcrMode, Dict[str, Any]] = {
    OcrMode.STRICT: {"temperature": 0.1},
    OcrMode.ENHANCE: {"temperature": 0.7},
}

_RESULT_EXTENSIONS = {
    OcrStyle.JSON: "json",
    OcrStyle.MARKDOWN: "md",
}


def result_extension(style: OcrStyle) -> str:
    """File extension for a saved result of the given style."""
    return _RESULT_EXTENSIONS.get(style, "txt")


def parse_style(value: "str | OcrStyle") -> OcrStyle:
    """Resolve a style from its value ("md") or name ("markdown"), case-insensitive."""
    return _parse_enum(OcrStyle, value, "style")


def parse_mode(value: "str | OcrMode") -> OcrMode:
    """Resolve a mode from its value or name, case-insensitive."""
    return _parse_enum(OcrMode, value, "mode")


def _parse_enum(enum_cls, value, kind: str):
    if isinstance(value, enum_cls):
        return value
    raw = str(value or "").strip().lower()
    for member in enum_cls:
        if raw == member.value or raw == member.name.lower():
            return member
    choices = ", ".join(m.value for m in enum_cls)
    raise ValueError(f"Unknown {kind} '{value}'. Expected one of: {choices}")
