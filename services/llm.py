from typing import Optional
from loguru import logger
from openai import AsyncOpenAI

from services.config import OpenAISettings

MAX_TRANSCRIPT_LENGTH = 12000

SYSTEM_PROMPT = """You are an expert sales call analyzer and meeting summarizer. Your job is to create comprehensive, detailed meeting notes that capture all important information from the call. Output valid Markdown. Be thorough and specific - include names, numbers, dates, and specific details mentioned."""

SUMMARY_SECTIONS = """Create a detailed summary of this sales/business call. Include ALL relevant information discussed:

## Meeting Overview
(Who was on the call, what company they represent, and the purpose of the meeting)

## Key Discussion Points
(Detailed bullet points covering ALL major topics discussed - include specific numbers, pain points, challenges, and context shared)

## Prospect/Client Background
(What did we learn about their business, current situation, challenges, budget, team size, tools they use, etc.)

## Interest & Objections
(What are they interested in? What concerns or objections did they raise? Price sensitivity?)

## Action Items & Next Steps
(Specific follow-ups needed, who owns each action, any timelines mentioned)

## Sales Intelligence
(Deal potential, likelihood to close, recommended follow-up timing, key leverage points)

## Sentiment & Relationship
(Overall tone of the call, rapport level, buying signals or red flags)

Be thorough - this summary will be used as the primary record of this conversation."""


def truncate_transcript(transcript: str, limit: int = MAX_TRANSCRIPT_LENGTH) -> str:
    if len(transcript) <= limit:
        return transcript
    return transcript[:limit] + "\n\n[Transcript truncated]"


def build_summary_prompt(transcript: str) -> str:
    return f"{SUMMARY_SECTIONS}\n\nTRANSCRIPT:\n{truncate_transcript(transcript)}"


class LLMClient:
    """LLM client that turns meeting transcripts into markdown call notes."""

    def __init__(self, api_key: Optional[str], settings: Optional[OpenAISettings] = None):
        self.api_key = api_key
        self.settings = settings or OpenAISettings()
        self.client = AsyncOpenAI(api_key=api_key) if api_key else None

        if not self.api_key:
            logger.warning("No OpenAI API key provided, using mock mode")

    async def generate_summary(self, transcript: str) -> str:
        """
        Generate a structured markdown summary from a transcript.

        Errors from the API are propagated to the caller; there is no retry here.
        """
        if not self.client:
            logger.info("Using mock LLM summarization")
            return self._mock_summary(transcript)

        response = await self.client.chat.completions.create(
            model=self.settings.model,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_summary_prompt(transcript)}
            ]
        )

        summary = response.choices[0].message.content if response.choices else None
        if not summary:
            raise ValueError("OpenAI returned empty response")

        logger.info(f"LLM summary generated ({len(summary)} chars)")
        return summary

    def _mock_summary(self, transcript: str) -> str:
        """Mock summary for local runs without an API key."""
        excerpt = truncate_transcript(transcript, 500)
        return f"""## Meeting Overview
Summary generated without an LLM (no OpenAI API key configured).

## Transcript Excerpt
{excerpt}"""
