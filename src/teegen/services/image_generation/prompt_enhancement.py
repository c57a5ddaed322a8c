"""Prompt validation and print-oriented prompt enhancement.

Turns a raw user prompt into a direct-to-garment (DTG) print prompt plus the
avoidance guidance sent as the negative prompt.
"""

import re

MAX_PROMPT_LENGTH = 1000

_TRANSPARENCY_RE = re.compile(r"transparent|no background|isolated|floating", re.IGNORECASE)
_SOLID_BACKGROUND_RE = re.compile(
    r"on\s+(a\s+)?(white|black|colou?red|solid|dark|light)\s+background", re.IGNORECASE
)
_BACKGROUND_SPEC_RE = re.compile(r"background\s*(colou?r|:)", re.IGNORECASE)
_TEXT_RE = re.compile(
    r"(saying|says|text|words?|quote|typography|lettering|\"[^\"]+\"|'[^']+')", re.IGNORECASE
)


def validate_prompt(prompt: str) -> str:
    """Validate prompt text for image generation.

    Args:
        prompt: Raw prompt from the slash command

    Returns:
        Prompt with surrounding whitespace removed

    Raises:
        ValueError: If prompt is empty or exceeds 1000 characters
    """
    if not isinstance(prompt, str):
        raise ValueError(f"Prompt must be a string, got {type(prompt).__name__}")

    prompt = prompt.strip()
    if not prompt:
        raise ValueError("Prompt cannot be empty")

    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValueError(
            f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters (got {len(prompt)})"
        )

    return prompt


def needs_transparency(prompt: str) -> bool:
    return bool(_TRANSPARENCY_RE.search(prompt))


def requests_solid_background(prompt: str) -> bool:
    return bool(_SOLID_BACKGROUND_RE.search(prompt) or _BACKGROUND_SPEC_RE.search(prompt))


def contains_text_request(prompt: str) -> bool:
    return bool(_TEXT_RE.search(prompt))


def build_print_prompt(user_prompt: str) -> str:
    """Build a DTG print-ready prompt for a t-shirt graphic.

    Models cannot produce real alpha transparency, so unless the user asked for a
    specific background the prompt requests pure white, which background removal
    strips afterwards.
    """
    if requests_solid_background(user_prompt):
        background_guidance = "Place the design on a clean, solid background as specified."
    else:
        background_guidance = (
            "Create the design as an isolated graphic element on a pure solid white "
            "background (#FFFFFF). The background must be completely uniform white with no "
            "gradients, shadows, or variations. The graphic should have clean, crisp edges "
            "that contrast clearly against the white background."
        )

    text_guidance = (
        "Any text in the design must be perfectly legible, with correct spelling and proper "
        "grammar. Use clear, readable fonts that will reproduce well in print."
        if contains_text_request(user_prompt)
        else ""
    )

    parts = [
        "Create a professional, print-ready graphic design for direct-to-garment (DTG) "
        "t-shirt printing.",
        f"Design concept: {user_prompt}",
        background_guidance,
        text_guidance,
        "Technical requirements:",
        "- Create only the graphic design itself, NOT a mockup of a t-shirt with the design on it",
        "- Use bold, vibrant colors with high contrast that will reproduce well in DTG printing",
        "- Ensure clean, crisp edges suitable for fabric printing",
        "- Design should be an original creation - do not include any copyrighted characters, "
        "trademarked logos, brand names, or recognizable intellectual property",
        "- Style should be commercially appealing and marketable",
    ]
    return "\n".join(part for part in parts if part)


def build_avoidance_guidance(user_prompt: str) -> str:
    """Build the negative prompt listing what the model should avoid."""
    avoid = [
        "mockups of t-shirts or clothing items",
        "blurry or low-resolution elements",
        "watermarks or signatures",
        "copyrighted characters or trademarked logos",
        "brand names or recognizable IP",
        "human models wearing the design",
    ]

    if not contains_text_request(user_prompt):
        avoid.append("text, words, or lettering unless specifically requested")

    if not requests_solid_background(user_prompt):
        avoid.extend(
            [
                "checkered patterns in the background",
                "gradient backgrounds",
                "off-white or cream backgrounds",
            ]
        )

    return f"Avoid: {', '.join(avoid)}"
