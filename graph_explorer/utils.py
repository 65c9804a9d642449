import math
from typing import Tuple


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """Parses '#rrggbb' or '#rgb' into an (r, g, b) tuple."""
    hex_color = hex_color.lstrip('#')
    if len(hex_color) == 3:
        hex_color = ''.join(c * 2 for c in hex_color)
    r, g, b = tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))
    return r, g, b


def lerp_rgb_string(hex_a: str, hex_b: str, t: float) -> str:
    """Interpolates between two hex colors by t (0.0 to 1.0), as 'rgb(r, g, b)' floored per channel."""
    r1, g1, b1 = hex_to_rgb(hex_a)
    r2, g2, b2 = hex_to_rgb(hex_b)
    r = math.floor(r1 + (r2 - r1) * t)
    g = math.floor(g1 + (g2 - g1) * t)
    b = math.floor(b1 + (b2 - b1) * t)
    return f'rgb({r}, {g}, {b})'


def pulse_intensity(phase: float) -> float:
    """Maps a continuously advancing phase onto [0, 1] with a sine wave."""
    return (math.sin(phase) + 1) / 2
