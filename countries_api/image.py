from pathlib import Path
from typing import Optional, Sequence

from PIL import Image, ImageDraw, ImageFont

from countries_api.errors import RenderError
from countries_api.logger import get_logger
from countries_api.models import AppStatus, Country

logger = get_logger(__name__)

IMAGE_SIZE = (600, 400)
TEXT_COLOR = (0, 0, 0)


def _load_font(font_path: Optional[str], size: int):
    if font_path:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError:
            logger.debug("Font %s not usable, falling back to default font", font_path)
    return ImageFont.load_default()


def generate_summary_image(
    status: AppStatus,
    top_countries: Sequence[Country],
    output_path: str = "cache/summary.png",
    font_path: Optional[str] = None,
) -> Path:
    """
    Generate summary image with total countries, last refresh time and top 5 by GDP.

    Args:
        status: Status snapshot written by the refresh
        top_countries: Countries with the highest estimated GDP
        output_path: Path to save image (overwritten)
        font_path: Optional TrueType font

    Returns:
        Path of the written image

    Raises:
        RenderError: If the image cannot be drawn or saved
    """
    path = Path(output_path)
    title_font = _load_font(font_path, 32)
    medium_font = _load_font(font_path, 24)
    small_font = _load_font(font_path, 18)

    img = Image.new("RGB", IMAGE_SIZE, color="white")
    draw = ImageDraw.Draw(img)

    y_position = 20
    draw.text((20, y_position), "Country Data Summary", fill=TEXT_COLOR, font=title_font)
    y_position += 40

    draw.text((20, y_position), f"Total Countries: {status.total_countries}", fill=TEXT_COLOR, font=medium_font)
    y_position += 30

    if status.last_refreshed_at is not None:
        timestamp_text = status.last_refreshed_at.strftime("%Y-%m-%d %H:%M:%S UTC")
    else:
        timestamp_text = "Never"
    draw.text((20, y_position), f"Last Refresh: {timestamp_text}", fill=TEXT_COLOR, font=medium_font)
    y_position += 50

    draw.text((20, y_position), "Top 5 by Estimated GDP:", fill=TEXT_COLOR, font=medium_font)
    y_position += 30

    for i, country in enumerate(top_countries[:5], 1):
        gdp_formatted = f"${country.estimated_gdp:,.2f}" if country.estimated_gdp is not None else "N/A"
        draw.text((30, y_position), f"{i}. {country.name} ({gdp_formatted})", fill=TEXT_COLOR, font=small_font)
        y_position += 25

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        img.save(path, format="PNG")
    except OSError as e:
        raise RenderError(f"Failed to save summary image to {path}: {e}") from e

    logger.info("Summary image generated at %s", path)
    return path
