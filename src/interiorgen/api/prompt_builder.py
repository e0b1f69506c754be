"""Prompt composition for the Interior Design Generator.

The hosted model was fine-tuned on colourful interiors with the trigger
token ``INTR``.  Every prompt sent to it is composed from the user's text,
that trigger token, a fixed style reference and, when the client supplied
room dimensions, a sentence describing the room size.

Template Structure::

    [User Prompt] INTR, [Fixed: style reference]. [Room size sentence]

The room size sentence is omitted entirely when no dimensions are given.

Usage
-----
::

    compiled = build_prompt(
        "A reading nook with a velvet armchair",
        Dimensions(width=4, length=5.5, height=2.7),
    )
"""

from __future__ import annotations

from interiorgen.api.models import Dimensions

# ---------------------------------------------------------------------------
# Fixed prompt sections.
# These are constants rather than configuration because the trigger token
# and style reference must match what the model was trained on.
# ---------------------------------------------------------------------------

TRIGGER_TOKEN = "INTR"

_STYLE_REFERENCE = (
    "in the style of a colourful contemporary interior, bold colour blocking, "
    "playful patterns, natural daylight, architectural photography, "
    "wide-angle lens, highly detailed, photorealistic"
)

NEGATIVE_PROMPT = (
    "blurry, low quality, distorted perspective, warped furniture, "
    "extra limbs, people, text, watermark, oversaturated, cartoon"
)


def _format_metres(value: float) -> str:
    """Render a number of metres without a trailing ``.0``."""
    return f"{value:g}"


def describe_dimensions(dimensions: Dimensions) -> str:
    """Return the room size sentence for *dimensions*.

    Args:
        dimensions: Room width, length and height in metres.

    Returns:
        A sentence such as ``"Room size: 4 m wide x 5.5 m long x 2.7 m high."``
    """
    return (
        f"Room size: {_format_metres(dimensions.width)} m wide x "
        f"{_format_metres(dimensions.length)} m long x "
        f"{_format_metres(dimensions.height)} m high."
    )


def build_prompt(prompt: str, dimensions: Dimensions | None = None) -> str:
    """Compose the final inference prompt.

    Args:
        prompt: The user's prompt.  Surrounding whitespace is stripped.
        dimensions: Optional room dimensions.  When ``None`` the room size
            sentence is left out.

    Returns:
        The composed prompt string.

    Raises:
        ValueError: If *prompt* is empty or whitespace only.
    """
    stripped = prompt.strip()
    if not stripped:
        raise ValueError("prompt must not be empty")

    parts: list[str] = [f"{stripped} {TRIGGER_TOKEN}, {_STYLE_REFERENCE}."]

    if dimensions is not None:
        parts.append(describe_dimensions(dimensions))

    return " ".join(parts)
