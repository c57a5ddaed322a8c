"""Replace near-white backgrounds with real alpha transparency (Pillow)."""

import io

import structlog
from PIL import Image, ImageChops, ImageFilter

logger = structlog.get_logger(__name__)

DEFAULT_THRESHOLD = 250
EDGE_ALPHA = 192


def remove_white_background(
    image_bytes: bytes,
    threshold: int = DEFAULT_THRESHOLD,
    feather_edges: bool = True,
    feather_radius: int = 1,
) -> bytes:
    """Make every pixel whose R, G and B are all >= threshold fully transparent.

    Opaque pixels bordering a removed region get a partial alpha so the cut-out
    edge is softened.

    Args:
        image_bytes: Encoded input image (any format Pillow reads)
        threshold: Per-channel whiteness cutoff (0-255)
        feather_edges: Soften the boundary between kept and removed pixels
        feather_radius: Neighbourhood radius used for feathering

    Returns:
        PNG bytes with an alpha channel

    Raises:
        ValueError: If the bytes are not a readable image
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Unreadable image: {e}") from e

    rgba = image.convert("RGBA")
    red, green, blue, alpha = rgba.split()

    def is_white(channel: Image.Image) -> Image.Image:
        return channel.point(lambda value: 255 if value >= threshold else 0)

    white = ImageChops.multiply(ImageChops.multiply(is_white(red), is_white(green)), is_white(blue))
    new_alpha = ImageChops.darker(alpha, ImageChops.invert(white))

    if feather_edges and feather_radius > 0:
        eroded = new_alpha.filter(ImageFilter.MinFilter(2 * feather_radius + 1))
        edge_floor = new_alpha.point(lambda value: EDGE_ALPHA if value == 255 else value)
        new_alpha = ImageChops.lighter(eroded, edge_floor)

    rgba.putalpha(new_alpha)

    output = io.BytesIO()
    rgba.save(output, format="PNG")
    result = output.getvalue()
    logger.debug(
        "background_removal.completed",
        input_size=len(image_bytes),
        output_size=len(result),
        threshold=threshold,
    )
    return result
