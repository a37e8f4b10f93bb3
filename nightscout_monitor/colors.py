"""
Color parsing helpers shared by configuration, severity classification
and renderers.

Colors are configured either as comma-separated RGB strings ("255,0,0")
or as hex strings ("#ff0000") and are normalized to lowercase hex.
"""

from typing import List

from .exceptions import InvalidColorError


def parse_color(color_str: str, color_name: str = "color") -> List[int]:
    """
    Parse a color string to an [R, G, B] list.

    Args:
        color_str: "R,G,B" or "#rrggbb"
        color_name: Setting name used in the error message

    Returns:
        RGB color as [R, G, B] list

    Raises:
        InvalidColorError: If the string is not a valid color
    """
    if not isinstance(color_str, str):
        raise InvalidColorError(color_name, repr(color_str))

    text = color_str.strip()
    try:
        if text.startswith("#"):
            if len(text) != 7:
                raise ValueError("Hex color must have 6 digits")
            parts = [int(text[i:i + 2], 16) for i in (1, 3, 5)]
        else:
            parts = [int(p.strip()) for p in text.split(",")]
            if len(parts) != 3:
                raise ValueError("Color must have exactly 3 components")
    except ValueError:
        raise InvalidColorError(color_name, color_str)

    if not all(0 <= value <= 255 for value in parts):
        raise InvalidColorError(color_name, color_str)

    return parts


def rgb_to_hex(rgb: List[int]) -> str:
    """
    Convert RGB color array to hex color string.

    Args:
        rgb: Color as [R, G, B] list

    Returns:
        Hex color string (e.g., "#ff0000")
    """
    return "#{:02x}{:02x}{:02x}".format(rgb[0], rgb[1], rgb[2])


def normalize_color(color_str: str, color_name: str = "color") -> str:
    """Parse any accepted color format and return it as lowercase hex."""
    return rgb_to_hex(parse_color(color_str, color_name))
