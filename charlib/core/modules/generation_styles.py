"""
Generation style definitions.

Each style appends natural-language direction to the user's prompt and
picks a default output size: portrait for reference sheets, landscape for
production shots, square otherwise.
"""

from typing import Optional

from ..types import GenerationStyle, ImageDimensions, StyleDefinition


GENERATION_STYLES: dict[GenerationStyle, StyleDefinition] = {

    GenerationStyle.CHARACTER_TURNAROUND: StyleDefinition(
        name="Character Turnaround",
        prompt_suffix=(
            "Create a professional character reference sheet with clean background, "
            "consistent lighting, high quality and detailed features."
        ),
        width=768,
        height=1024,
    ),

    GenerationStyle.CHARACTER_PRODUCTION: StyleDefinition(
        name="Character Production",
        prompt_suffix=(
            "Create a cinematic quality image with professional lighting, high detail, "
            "and production-ready quality."
        ),
        width=1024,
        height=768,
    ),

    GenerationStyle.CUSTOM: StyleDefinition(
        name="Custom",
        prompt_suffix="Create a high quality, detailed image.",
        width=1024,
        height=1024,
    ),
}


def get_style(style: GenerationStyle) -> StyleDefinition:
    """Get the definition for a style."""
    return GENERATION_STYLES[style]


def build_generation_prompt(prompt: str, style: GenerationStyle) -> str:
    """Decorate a prompt with its style's direction."""
    return get_style(style).apply_to_prompt(prompt)


def get_dimensions(style: GenerationStyle, override: Optional[ImageDimensions] = None) -> ImageDimensions:
    """Output size for a style, unless explicitly overridden."""
    if override is not None:
        return override
    definition = get_style(style)
    return ImageDimensions(width=definition.width, height=definition.height)
