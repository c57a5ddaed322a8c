"""Instructions and response parsing shared by every ideation backend."""

import json
import re
from typing import Any

from pydantic import ValidationError

from teegen.services.exceptions import ProviderError
from teegen.services.ideation.types import IdeationResult

IDEATION_INSTRUCTIONS = """You write image generation prompts for a print-on-demand t-shirt shop.

Use {search_tool} to find what is selling for the given theme right now: current
t-shirt designs, graphic design trends and the visual styles buyers respond to.
Then write {count} prompts.

Good prompts for printed garments:
- have one focal subject (a symbol, icon, animal or figure) with room around it
- name a concrete art style such as flat vector illustration, screen print,
  minimalist icon, bold graphic or geometric art
- use two or three colors at most
- describe shapes and objects, never abstract feelings
- contain no text, lettering or typography
- have no borders, frames or busy layered backgrounds

Return ONLY a JSON object of this shape:
{{
  "theme": "<the theme>",
  "research_insights": {{
    "trending_keywords": ["..."],
    "popular_visuals": ["..."],
    "market_context": "<one or two sentences>"
  }},
  "prompts": [
    {{"name": "<short name>", "concept": "<what the design represents>", "prompt": "<the prompt>"}}
  ]
}}"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_instructions(search_tool: str, prompt_count: int) -> str:
    return IDEATION_INSTRUCTIONS.format(search_tool=search_tool, count=prompt_count)


def build_request(theme: str) -> str:
    return f'Research current trends and write t-shirt design prompts for this theme: "{theme}"'


def parse_ideation_response(text: str, model: str) -> IdeationResult:
    """Extract and validate the JSON object in a model response.

    The model sometimes wraps the object in prose or a code fence; the outermost
    braces are used.

    Raises:
        ProviderError: If no valid result can be parsed
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ProviderError("No JSON object found in ideation response")
    try:
        data: Any = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ProviderError(f"Ideation response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProviderError("Ideation response is not a JSON object")

    data["model"] = model
    try:
        result = IdeationResult.model_validate(data)
    except ValidationError as e:
        raise ProviderError(f"Invalid ideation response: {e.error_count()} validation error(s)") from e
    if not result.prompts:
        raise ProviderError("Ideation response contained no prompts")
    return result
