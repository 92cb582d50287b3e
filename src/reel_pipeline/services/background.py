"""Background visual for a reel: sport-coloured gradient with the celebrity name."""

import io
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from PIL import Image, ImageDraw, ImageFont

from ..logging_config import get_logger
from ..models import CelebrityProfile

logger = get_logger(__name__)

Color = Tuple[int, int, int]

SPORT_GRADIENTS: Dict[str, Tuple[str, str]] = {
    "basketball": ("#ff6b35", "#f7931e"),
    "football": ("#2d5016", "#3e6b1f"),
    "soccer": ("#1e5799", "#2989d8"),
    "tennis": ("#8360c3", "#2ebf91"),
    "baseball": ("#c31432", "#240b36"),
}
DEFAULT_GRADIENT = ("#667db6", "#0082c8")


def _hex_to_rgb(value: str) -> Color:
    value = value.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def gradient_for_sport(sport: str) -> Tuple[Color, Color]:
    """Start/end colours for ``sport`` (case-insensitive, with a default palette)."""
    start, end = SPORT_GRADIENTS.get(sport.strip().lower(), DEFAULT_GRADIENT)
    return _hex_to_rgb(start), _hex_to_rgb(end)


def render_background(celebrity: CelebrityProfile, resolution: Tuple[int, int]) -> Image.Image:
    """
    Draw the background frame for ``celebrity``.

    The image is a diagonal two-colour gradient chosen by sport with the
    name and sport centred on it. Output is deterministic for a given
    profile and resolution.

    Args:
        celebrity: Subject of the reel
        resolution: (width, height) in pixels

    Returns:
        RGB image of the requested size
    """
    width, height = resolution
    start, end = gradient_for_sport(celebrity.sport)

    # Diagonal gradient: blend a horizontal and a vertical ramp
    horizontal = Image.linear_gradient("L").rotate(90).resize((width, height))
    vertical = Image.linear_gradient("L").resize((width, height))
    mask = Image.blend(horizontal, vertical, 0.5)
    image = Image.composite(Image.new("RGB", (width, height), end), Image.new("RGB", (width, height), start), mask)

    draw = ImageDraw.Draw(image)
    _draw_centered(draw, celebrity.name, width, height // 2 - height // 12, max(24, height // 10))
    _draw_centered(draw, celebrity.sport.upper(), width, height // 2 + height // 12, max(16, height // 22))
    return image


def _draw_centered(draw: ImageDraw.ImageDraw, text: str, width: int, center_y: int, size: int) -> None:
    font = ImageFont.load_default(size=size)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = (width - (right - left)) // 2 - left
    y = center_y - (bottom - top) // 2 - top
    # Drop shadow keeps the label readable on light palettes
    offset = max(2, size // 24)
    draw.text((x + offset, y + offset), text, font=font, fill=(0, 0, 0))
    draw.text((x, y), text, font=font, fill=(255, 255, 255))


def background_png(
    celebrity: CelebrityProfile,
    resolution: Tuple[int, int],
    output_path: Optional[Union[str, Path]] = None,
) -> bytes:
    """Render the background as PNG bytes, optionally also writing it to ``output_path``."""
    image = render_background(celebrity, resolution)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    data = buffer.getvalue()
    if output_path is not None:
        Path(output_path).write_bytes(data)
    logger.debug(
        "Background rendered",
        celebrity_id=celebrity.id,
        sport=celebrity.sport,
        width=resolution[0],
        height=resolution[1],
        bytes=len(data),
    )
    return data
