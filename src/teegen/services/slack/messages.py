"""Slack message builders (Block Kit).

Ephemeral builders return a full response body; view builders return a list of
blocks that callers wrap with text and response flags.
"""

from dataclasses import dataclass
from typing import Any, Iterable

Block = dict[str, Any]

KEEP_IMAGE_ACTION = "keep_image"
DISCARD_IMAGE_ACTION = "discard_image"
KEEP_ALL_ACTION = "keep_all"
DISCARD_ALL_ACTION = "discard_all"
REGENERATE_ALL_ACTION = "regenerate_all"


@dataclass(frozen=True)
class ImageView:
    """What the results view needs to know about one artifact."""

    image_id: str
    image_url: str
    status: str
    download_url: str | None = None


def encode_image_action_value(image_id: str, request_id: str) -> str:
    return f"{image_id}|{request_id}"


def decode_image_action_value(value: str) -> tuple[str, str]:
    """Split an "imageId|requestId" button value.

    Raises:
        ValueError: If the value does not contain exactly two non-empty parts
    """
    parts = value.split("|")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Invalid image action value {value!r}. Expected imageId|requestId")
    return parts[0], parts[1]


def ephemeral(text: str) -> dict[str, Any]:
    return {"response_type": "ephemeral", "text": text}


def build_generating_message(prompt: str, image_count: int = 3) -> dict[str, Any]:
    return ephemeral(
        f"Generating {image_count} images for your prompt...\n\n*Prompt:* {prompt}\n\n"
        "This may take 30-60 seconds."
    )


def build_channel_restriction_message() -> dict[str, Any]:
    return ephemeral("This command is only available in the designated design channel.")


def build_empty_prompt_message() -> dict[str, Any]:
    return ephemeral("Please provide a prompt. Usage: `/generate <your prompt>`")


def build_error_message(message: str) -> dict[str, Any]:
    return ephemeral(f"An error occurred: {message}")


def build_unknown_command_message(command: str) -> dict[str, Any]:
    return ephemeral(f"Unknown command `{command}`. Try `/generate <prompt>` or `/ideate <theme>`.")


def _section(text: str, block_id: str | None = None) -> Block:
    block: Block = {"type": "section", "text": {"type": "mrkdwn", "text": text}}
    if block_id:
        block["block_id"] = block_id
    return block


def _button(text: str, action_id: str, value: str, style: str | None = None) -> Block:
    button: Block = {
        "type": "button",
        "text": {"type": "plain_text", "text": text, "emoji": True},
        "action_id": action_id,
        "value": value,
    }
    if style:
        button["style"] = style
    return button


def _image_actions(image_id: str, request_id: str) -> Block:
    value = encode_image_action_value(image_id, request_id)
    return {
        "type": "actions",
        "block_id": f"actions_{image_id}",
        "elements": [
            _button("Keep", KEEP_IMAGE_ACTION, value, style="primary"),
            _button("Discard", DISCARD_IMAGE_ACTION, value, style="danger"),
        ],
    }


def _batch_actions(request_id: str) -> list[Block]:
    return [
        {"type": "divider"},
        {
            "type": "actions",
            "block_id": "batch_actions",
            "elements": [
                _button("Keep All", KEEP_ALL_ACTION, request_id, style="primary"),
                _button("Discard All", DISCARD_ALL_ACTION, request_id),
                _button("Regenerate All", REGENERATE_ALL_ACTION, request_id),
            ],
        },
    ]


def _request_context(request_id: str) -> Block:
    return {
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"Request ID: `{request_id}`"}],
    }


def build_results_view(prompt: str, images: Iterable[ImageView], request_id: str) -> list[Block]:
    """Build the results view reflecting the current status of every artifact.

    - generated images show Keep/Discard buttons
    - kept images show a status line with their download link
    - discarded images are hidden
    - batch buttons appear only while at least one image is still generated
    """
    images = list(images)
    blocks: list[Block] = [_section(f"*Generated Images*\n*Prompt:* {prompt}")]

    visible = [image for image in images if image.status != "discarded"]
    active = [image for image in images if image.status == "generated"]

    if not visible:
        blocks.append(_section("_All images have been discarded._"))
        blocks.append(_request_context(request_id))
        return blocks

    for position, image in enumerate(visible, start=1):
        blocks.append(
            {
                "type": "image",
                "block_id": f"image_{image.image_id}",
                "image_url": image.image_url,
                "alt_text": f"Generated image {position}",
                "title": {"type": "plain_text", "text": f"Image {position}"},
            }
        )
        if image.status == "generated":
            blocks.append(_image_actions(image.image_id, request_id))
        else:
            status_text = (
                f"✓ *Kept* - <{image.download_url}|Download Image>"
                if image.download_url
                else "✓ *Kept*"
            )
            blocks.append(_section(status_text, block_id=f"status_{image.image_id}"))

    if active:
        blocks.extend(_batch_actions(request_id))

    blocks.append(_request_context(request_id))
    return blocks


def build_regenerating_view(prompt: str) -> list[Block]:
    return [
        _section(
            f"*Regenerating images...*\n\n*Prompt:* {prompt}\n\nThis may take 30-60 seconds."
        )
    ]


def build_generation_failed_view(error: str) -> list[Block]:
    return [
        _section(
            f"*Image generation failed*\n\nError: {error}\n\n"
            "Please try again with a different prompt."
        )
    ]


# Ideation messages


def build_ideating_message(theme: str) -> dict[str, Any]:
    return ephemeral(
        f'Researching trends and generating creative prompts for "{theme}"...\n\n'
        "This may take 15-30 seconds as we search for current trends."
    )


def build_empty_theme_message() -> dict[str, Any]:
    return ephemeral(
        "Please provide theme keywords. Usage: `/ideate <theme keywords>`\n\n"
        "Example: `/ideate retro gaming 80s`"
    )


def build_ideation_result_view(
    theme: str,
    trending_keywords: list[str],
    popular_visuals: list[str],
    market_context: str,
    prompts: Iterable[tuple[str, str, str]],
) -> list[Block]:
    """Build the ideation result view.

    Args:
        prompts: (name, concept, prompt) triples in display order
    """
    prompts = list(prompts)
    divider: Block = {"type": "divider"}
    blocks: list[Block] = [
        _section(f'*Design Prompts: "{theme}"*'),
        divider,
        _section("*Market Research Insights*"),
        _section(f"_{market_context}_"),
    ]
    if trending_keywords:
        blocks.append(_section(f"*Trending Keywords:* {' • '.join(trending_keywords[:8])}"))
    if popular_visuals:
        blocks.append(_section(f"*Visual Trends:* {' • '.join(popular_visuals[:5])}"))
    blocks.append(divider)
    blocks.append(
        _section(f"*Design Prompts ({len(prompts)})*\n_Use with_ `/generate <prompt>`")
    )
    for number, (name, concept, prompt) in enumerate(prompts, start=1):
        blocks.append(_section(f"*{number}. {name}*\n_{concept}_"))
        blocks.append(_section(f"```{prompt}```"))
    return blocks


def build_ideation_failed_message(error: str) -> dict[str, Any]:
    return ephemeral(f"Failed to generate prompts: {error}\n\nPlease try again.")
