import logging
import os
import re
from enum import Enum

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class SummaryLength(Enum):
    SHORT = "short"
    MEDIUM = "medium"

    @classmethod
    def parse(cls, value: str | None) -> "SummaryLength":
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown summary length {value!r}, using 'short'")
            return cls.SHORT


class SummaryTemplate(Enum):
    DEFAULT = "default"
    RND_REPORT = "RND_REPORT"
    HR_BULLET = "HR_BULLET"
    SALES_ACTION_ITEMS = "SALES_ACTION_ITEMS"

    @classmethod
    def parse(cls, value: str | None) -> "SummaryTemplate":
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown summary template {value!r}, using 'default'")
            return cls.DEFAULT


SENTENCE_LIMITS = {
    SummaryLength.SHORT: 3,
    SummaryLength.MEDIUM: 6,
}

NO_SENTENCES_MESSAGE = "No sentences were found to summarize."

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?。！？])\s+")

# (intro, line format, closing). Line format receives ``n`` and ``sentence``.
_FRAMED_TEMPLATES = {
    SummaryTemplate.RND_REPORT: (
        "\U0001f52c R&D key findings",
        "{n}. {sentence}",
        "\U0001f4cc Select an item if it needs further analysis.",
    ),
    SummaryTemplate.HR_BULLET: (
        "\U0001f465 HR briefing",
        "• {sentence}",
        "✅ HR staff: please double-check any sensitive information.",
    ),
    SummaryTemplate.SALES_ACTION_ITEMS: (
        "\U0001f4bc Sales action items",
        "- [ ] ({n}) {sentence}",
        "⚡ Review these items before the next meeting.",
    ),
}


def split_sentences(text: str) -> list[str]:
    text = text.strip()
    if not text:
        return []
    return [s.strip() for s in _SENTENCE_BOUNDARY_RE.split(text) if s.strip()]


def format_summary(sentences: list[str], template: SummaryTemplate) -> str:
    """Render selected sentences with the given template."""
    if not sentences:
        return NO_SENTENCES_MESSAGE
    if template not in _FRAMED_TEMPLATES:
        return " ".join(sentences)
    intro, line_format, closing = _FRAMED_TEMPLATES[template]
    lines = [
        line_format.format(n=n, sentence=sentence)
        for n, sentence in enumerate(sentences, start=1)
    ]
    return "\n".join([intro, *lines, "", closing])


class Summarizer:
    """Turns extracted text into a summary string.

    Implementations must be deterministic for a given input so that a
    summary streams the same way every time.
    """

    async def summarize(
            self,
            text: str,
            length: SummaryLength,
            template: SummaryTemplate,
    ) -> str:
        raise NotImplementedError


class ExtractiveSummarizer(Summarizer):
    """Keeps the leading sentences of the document and applies a template."""

    def __init__(self, limits: dict[SummaryLength, int] | None = None):
        self.limits = limits or SENTENCE_LIMITS

    async def summarize(
            self,
            text: str,
            length: SummaryLength,
            template: SummaryTemplate,
    ) -> str:
        sentences = split_sentences(text)[: self.limits[length]]
        return format_summary(sentences, template)


LENGTH_INSTRUCTIONS = {
    SummaryLength.SHORT: "in at most three short lines",
    SummaryLength.MEDIUM: "in one medium-length paragraph",
}

TEMPLATE_INSTRUCTIONS = {
    SummaryTemplate.DEFAULT: "Write plain prose.",
    SummaryTemplate.RND_REPORT: "Format it as a numbered list of R&D findings.",
    SummaryTemplate.HR_BULLET: "Format it as bullet points for an HR briefing.",
    SummaryTemplate.SALES_ACTION_ITEMS: "Format it as a checklist of sales action items.",
}


class OpenAISummarizer(Summarizer):
    """Summarizes through any OpenAI-compatible chat completions API."""

    def __init__(
            self,
            model: str = "gpt-4o-mini",
            api_key: str | None = None,
            base_url: str | None = None,
    ):
        if not api_key:
            api_key = os.getenv("OPENAI_API_KEY")
        self.model = model
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=5,
            timeout=180.0
        )

    def build_messages(
            self,
            text: str,
            length: SummaryLength,
            template: SummaryTemplate,
    ) -> list[dict]:
        system_prompt = (
            "You are a helpful assistant that summarizes internal documents. "
            f"Summarize the document {LENGTH_INSTRUCTIONS[length]}. "
            f"{TEMPLATE_INSTRUCTIONS[template]}"
        )
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": text},
        ]

    async def summarize(
            self,
            text: str,
            length: SummaryLength,
            template: SummaryTemplate,
    ) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=self.build_messages(text, length, template),
            temperature=0,
        )
        content = response.choices[0].message.content
        return (content or "").strip()
