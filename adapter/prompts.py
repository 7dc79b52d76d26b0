"""
Analysis Prompt
===============

Pure function from (title, body) to the prompt text.

INVARIANT: Same (title, body) -> same prompt_hash
"""

from __future__ import annotations
from dataclasses import dataclass
import hashlib


ANALYSIS_TEMPLATE = """You are an expert AI analyzer. Analyze the following post and provide a structured JSON response.

Your analysis should include:
1. **Sentiment Analysis**: Determine if the overall tone is positive, neutral, or negative
2. **Summary Generation**: Create a concise 1-2 sentence summary capturing the main point
3. **Keyword Extraction**: Extract 3-5 most relevant and meaningful keywords

Post:
{text}

Respond with ONLY a valid JSON object in this exact format (no markdown, no explanations):
{{
  "sentiment": "positive" | "neutral" | "negative",
  "summary": "your concise summary here",
  "keywords": ["keyword1", "keyword2", "keyword3", "keyword4", "keyword5"]
}}"""

EMPTY_BODY = "No additional content"


@dataclass(frozen=True)
class AnalysisPrompt:
    """Frozen prompt with hash for tracking."""
    prompt_text: str
    prompt_hash: str

    @staticmethod
    def create(title: str, body: str) -> 'AnalysisPrompt':
        text = f"Title: {title}\n\nContent: {body or EMPTY_BODY}"
        prompt_text = ANALYSIS_TEMPLATE.format(text=text)
        return AnalysisPrompt(
            prompt_text=prompt_text,
            prompt_hash=hashlib.sha256(prompt_text.encode()).hexdigest(),
        )
