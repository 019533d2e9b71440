# trimerge_input.py
# Maps raw player input (drag vectors, typed keys) onto slide directions.

import math
from typing import Dict, Optional

from trimerge_core import DIRECTION

SWIPE_THRESHOLD = 50.0

KEY_BINDINGS: Dict[str, DIRECTION] = {
    "Q": DIRECTION.TOP_LEFT,
    "E": DIRECTION.TOP_RIGHT,
    "A": DIRECTION.LEFT,
    "D": DIRECTION.RIGHT,
    "Z": DIRECTION.BOTTOM_LEFT,
    "C": DIRECTION.BOTTOM_RIGHT,
}


def classify_swipe(dx: float, dy: float, threshold: float = SWIPE_THRESHOLD) -> Optional[DIRECTION]:
    """
    Turns a drag vector in screen coordinates (y grows downward) into a direction.
    Args:
        dx (float): Horizontal drag distance.
        dy (float): Vertical drag distance.
        threshold (float): Minimum distance along either axis to count as a swipe.
    Returns:
        Optional[DIRECTION]: The direction whose 60 degree sector contains the
                             drag angle, or None for a drag that is too short.
    """
    if abs(dx) <= threshold and abs(dy) <= threshold:
        return None

    angle = math.degrees(math.atan2(dy, dx))
    if angle < 0:
        angle += 360

    if angle <= 30 or angle >= 330:
        return DIRECTION.RIGHT
    if angle <= 90:
        return DIRECTION.BOTTOM_RIGHT
    if angle <= 150:
        return DIRECTION.BOTTOM_LEFT
    if angle <= 210:
        return DIRECTION.LEFT
    if angle <= 270:
        return DIRECTION.TOP_LEFT
    return DIRECTION.TOP_RIGHT


def parse_direction(text: str) -> DIRECTION:
    """
    Looks up a direction by name ("top_left", "RIGHT") or by its key binding.
    Raises:
        ValueError: If the text names no direction.
    """
    key = text.strip().upper().replace("-", "_").replace(" ", "_")
    if key in KEY_BINDINGS:
        return KEY_BINDINGS[key]
    try:
        return DIRECTION[key]
    except KeyError:
        raise ValueError(f"Unknown direction: {text!r}") from None
