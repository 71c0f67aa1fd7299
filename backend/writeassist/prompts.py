from __future__ import annotations

BASE_PROMPT = (
    "You are an expert grammar checker. Analyze the following text and provide ONLY grammar "
    "suggestions for grammatical errors, spelling mistakes, and punctuation issues."
)

OUTPUT_RULES = "Return ONLY valid JSON (no code fences, no prose, no markdown)."

GUIDELINES = (
    "- Focus ONLY on grammar, spelling, and punctuation errors",
    "- Do NOT provide clarity, style, or completion suggestions",
    "- Provide 1-5 grammar corrections maximum",
    "- If there are no grammar errors, return an empty suggestions array",
    '- Include the exact original text that needs to be corrected in "originalText"',
)


def grammar_prompt(text: str) -> str:
    """Embed *text* in the grammar-checking instructions sent to the model."""
    guidelines = "\n".join(GUIDELINES)
    return (
        f"{BASE_PROMPT}\n\n"
        f"Text to analyze:\n---\n{text}\n---\n\n"
        f"{OUTPUT_RULES}\n\n"
        f"Guidelines:\n{guidelines}"
    )


__all__ = ["grammar_prompt"]
