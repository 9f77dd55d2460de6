"""
Fortune client: turns a Four Pillars chart into a streamed LLM reading.

Builds the prompt, streams the Anthropic Messages API response as
server-sent events, and validates the JSON reading it contains.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

import requests
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from threebows.bazi import FourPillarChart

load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent / ".env")

logger = logging.getLogger(__name__)

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-haiku-4-5-20251001"
MAX_TOKENS = 900

YEAR_LABEL = "Chinese New Year 2026, the Year of the Fire Horse (丙午)"


class FortuneError(Exception):
    """A reading could not be obtained; the message is safe to show the visitor."""


# --- Reading schema ---

class FiveElements(BaseModel):
    dominant: str
    reading: str


class Compatibility(BaseModel):
    reading: str
    harmonious: List[str] = Field(default_factory=list)
    challenging: List[str] = Field(default_factory=list)


class Fortune(BaseModel):
    zodiac_animal: str
    zodiac_element: str
    personality: str
    five_elements: FiveElements
    wealth: str
    relationships: str
    compatibility: Compatibility
    overall: str = Field(..., description="One-sentence fortune motto")
    lucky_numbers: List[int] = Field(default_factory=list)
    lucky_colors: List[str] = Field(default_factory=list)
    lucky_directions: List[str] = Field(default_factory=list)


# --- Prompt ---

def build_prompt(birth_date: str, birth_time: Optional[str], chart: FourPillarChart,
                 year_label: str = YEAR_LABEL) -> str:
    """
    Build the reading prompt for a chart.

    Args:
        birth_date: "YYYY-MM-DD" as entered
        birth_time: "HH:MM" as entered, or None/"" if unknown
        chart: computed Four Pillars (hour may be None)
        year_label: the year the reading is for
    """
    pillars = chart.describe()
    born = f"{birth_date} at {birth_time}" if birth_time else birth_date
    time_status = "provided" if birth_time else "unknown"

    return f"""You are a master Ba Zi (八字) fortune teller in the tradition of Chinese metaphysics.

The user was born on {born} (time {time_status}).

Their Four Pillars (Ba Zi chart) are:
- Year Pillar:  {pillars['year']}
- Month Pillar: {pillars['month']}
- Day Pillar:   {pillars['day']}
- Hour Pillar:  {pillars['hour']}

Today is {year_label}.

Provide a Ba Zi reading with the following sections. Use poetic, evocative language.
Mix in occasional Chinese characters for key terms. Be specific to their chart,
avoid generic horoscope language.

Format your response as JSON with EXACTLY these keys (no markdown, no code fences, raw JSON only):
{{
  "zodiac_animal": "...",
  "zodiac_element": "...",
  "personality": "2-3 sentences",
  "five_elements": {{
    "dominant": "element name",
    "reading": "1-2 sentences about their elemental balance and what it means this year"
  }},
  "wealth": "2-3 sentences",
  "relationships": "2-3 sentences",
  "compatibility": {{
    "reading": "2-3 sentences about who they harmonize with and clash with this year and why",
    "harmonious": ["Animal1", "Animal2"],
    "challenging": ["Animal1", "Animal2"]
  }},
  "overall": "One powerful summary sentence, their fortune motto for the year",
  "lucky_numbers": [3, 7],
  "lucky_colors": ["Crimson", "Gold"],
  "lucky_directions": ["South", "Southeast"]
}}"""


# --- Response handling ---

def iter_stream_text(lines: Iterable[str]) -> Iterator[str]:
    """Yield the text deltas from a Messages API server-sent event stream."""
    for line in lines:
        if not line or not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if not data or data == "[DONE]":
            continue
        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            continue
        delta = event.get("delta") or {}
        if event.get("type") == "content_block_delta" and delta.get("type") == "text_delta":
            yield delta.get("text", "")


_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


def parse_fortune(text: str) -> Fortune:
    """Parse the model's reply into a Fortune, tolerating stray code fences."""
    cleaned = _FENCE.sub("", text).strip()
    try:
        return Fortune.model_validate_json(cleaned)
    except ValidationError:
        logger.error("Failed to parse fortune JSON: %s", cleaned)
        raise FortuneError("The oracle spoke in riddles. Please try again.")


def request_fortune(prompt: str, api_key: Optional[str] = None, model: Optional[str] = None,
                    on_chunk: Optional[Callable[[str], None]] = None,
                    session: Optional[requests.Session] = None, timeout: float = 60) -> str:
    """
    Stream a completion for the prompt and return the full text.

    Args:
        api_key: defaults to $ANTHROPIC_API_KEY
        model: defaults to $THREEBOWS_MODEL, then DEFAULT_MODEL
        on_chunk: called with each streamed text piece
        session: requests session (injectable for tests)
    """
    api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise FortuneError("API key missing. Set ANTHROPIC_API_KEY in .env.")
    model = model or os.getenv("THREEBOWS_MODEL") or DEFAULT_MODEL
    post = session.post if session is not None else requests.post

    try:
        response = post(
            API_URL,
            headers={
                "x-api-key": api_key,
                "anthropic-version": API_VERSION,
                "content-type": "application/json",
            },
            json={
                "model": model,
                "max_tokens": MAX_TOKENS,
                "stream": True,
                "messages": [{"role": "user", "content": prompt}],
            },
            stream=True,
            timeout=timeout,
        )
    except requests.exceptions.RequestException as err:
        logger.warning("Fortune request failed: %s", err)
        raise FortuneError("Could not reach the oracle. Check your connection.")

    with response:
        if response.status_code == 401:
            raise FortuneError("API key missing or invalid. Check ANTHROPIC_API_KEY.")
        if response.status_code == 429:
            raise FortuneError("Rate limited. Wait a moment and try again.")
        if response.status_code >= 400:
            raise FortuneError(f"Oracle unreachable ({response.status_code}). Try again.")

        # text/event-stream without a charset would otherwise decode as latin-1
        response.encoding = "utf-8"
        pieces = []
        try:
            for text in iter_stream_text(response.iter_lines(decode_unicode=True)):
                pieces.append(text)
                if on_chunk:
                    on_chunk(text)
        except requests.exceptions.RequestException as err:
            logger.warning("Fortune stream interrupted: %s", err)
            raise FortuneError("Could not reach the oracle. Check your connection.")
    return "".join(pieces)


def get_fortune(birth_date: str, birth_time: Optional[str], chart: FourPillarChart,
                on_chunk: Optional[Callable[[str], None]] = None, **kwargs) -> Fortune:
    """Build the prompt, stream the reading and parse it."""
    prompt = build_prompt(birth_date, birth_time, chart)
    return parse_fortune(request_fortune(prompt, on_chunk=on_chunk, **kwargs))
