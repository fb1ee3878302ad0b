from __future__ import annotations

SUMMARY_PROMPT_TEMPLATE = """You are a news editor. Read the social media post below and respond with strictly valid JSON and nothing else.
The JSON object must have exactly two string fields:
- "title": a short, factual headline (at most 12 words).
- "summary": one paragraph of about 85 words explaining the post for a general reader.
Write both fields in {language}. Do not add markdown, code fences or commentary.

Post:
\"\"\"
{text}
\"\"\""""


def build_summary_prompt(text: str, *, language: str) -> str:
    return SUMMARY_PROMPT_TEMPLATE.format(language=language, text=text.strip())
