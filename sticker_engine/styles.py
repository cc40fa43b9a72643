"""Sticker styles and the prompts sent to the model."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StickerStyle:
    key: str
    label: str
    prompt: str
    description: str


DEFAULT_STYLE = "ANIME"

STICKER_STYLES: Dict[str, StickerStyle] = {
    "ANIME": StickerStyle(
        key="ANIME",
        label="Anime",
        prompt=(
            "90s Anime Style, Cel-shaded, Thick speed lines, Exaggerated facial expressions, "
            "Vibrant flat colors, Sticker Outline. Typography: BOLD COMIC BOOK FONT / MANGA SFX."
        ),
        description="Expressive cel-shaded art with comic text",
    ),
}

BACKGROUND_INSTRUCTION = "Background MUST be PURE #000000 BLACK for removal. No gradients."

# Chance of adding a sound-effect caption when the user gave none.
SFX_PROBABILITY = 0.3

SYSTEM_PROMPT = """You are a MAD GENIUS DIGITAL ARTIST specialized in "ROAST" Caricatures and WhatsApp Stickers.

*** THE "FUNNY" MANIFESTO ***

1. **COMICAL EXAGGERATION (The "Rubber Face" Rule)**:
   - **HEAD**: 200% larger than normal (Bobblehead).
   - **EYES**: Enormous, expressive, popping out (Tex Avery style) or intensely squinting.
   - **MOUTH**: Exaggerated emotions. If happy, show all teeth. If mad, show steam.
   - **BODY**: Tiny, shrunken, or contorted in a funny pose.

2. **UNEXPECTED SCENARIOS (The "Context Switch")**:
   - If the subject is an animal, give them a human job (e.g., a cat trading stocks).
   - If the subject is a person, put them in a ridiculous costume or situation.
   - Add **VISUAL GAGS**: A tiny sign saying "Help", a coffee mug that looks tired, a chaotic background detail.

3. **VISUAL STYLE FIDELITY**:
   - **STYLE**: 90s ANIME / MANGA. Cel-shaded.
   - **TEXT FONT**: **COMIC BOOK / MANGA STYLE**. Thick outlines, bold colors, action-oriented.
   - **BACKGROUND**: **PURE #000000 BLACK**. No gradients. No shadows on the floor.
   - **BORDER**: Thick white sticker border.

4. **TEXT INTEGRATION**:
   - Text MUST be integrated into the scene (e.g., on a sign, in a bubble, or as a sticker overlay).
   - **FONT**: Use BOLD COMIC FONT.
   - DO NOT put text floating in empty space. Anchor it to the sticker.
"""

DETECT_SUBJECT_PROMPT = "Identify the main subject and suggest a ROAST caption. Make it mean but funny."
DEFAULT_ANALYSIS_PROMPT = "Roast this image. Find the funniest flaw."


def resolve_style(key: Optional[str]) -> StickerStyle:
    """Look up a style, falling back to the default for unknown keys."""

    style = STICKER_STYLES.get((key or "").upper())
    if style is None:
        logger.warning("Unknown sticker style %r, using %s", key, DEFAULT_STYLE)
        return STICKER_STYLES[DEFAULT_STYLE]
    return style


def build_caption_prompt(caption: str, rng: Optional[random.Random] = None) -> str:
    if caption.strip():
        return (
            f'Include text integrated into the design: "{caption}". '
            "Font MUST be BOLD COMIC BOOK STYLE / MANGA SFX."
        )
    roll = (rng or random).random()
    if roll < SFX_PROBABILITY:
        return 'Include a comic sound effect text like "POW!", "LOL", or "NANI?!" styled in BOLD MANGA FONT.'
    return ""


def build_text_sticker_prompt(subject: str, style: StickerStyle, caption_prompt: str) -> str:
    return (
        f"A hilarious WhatsApp sticker of {subject}.\n\n"
        "VISUAL DIRECTIVES:\n"
        f"- STYLE: {style.prompt}\n"
        "- FONT: BOLD COMIC BOOK STYLE.\n"
        "- EXAGGERATION: Big head, expressive face, small body.\n"
        "- SCENARIO: Make it funny/chaotic.\n"
        f"- {BACKGROUND_INSTRUCTION}\n"
        f"- {caption_prompt}\n"
    )


def build_photo_sticker_prompt(idea: str, style: StickerStyle, caption_prompt: str) -> str:
    prompt = (
        "TRANSFORM this image into a FUNNY ANIME STICKER.\n\n"
        "STEPS:\n"
        "1. Identify the main subject.\n"
        f"2. APPLY STYLE: {style.prompt}\n"
        "3. **CARICATURE IT**: Make the head 50% bigger. Make expressions 200% more intense.\n"
        "4. **SITUATION**: If they look boring, add a funny prop.\n"
        "5. **TEXT**: Use BOLD COMIC FONT for any text.\n"
        f"6. {BACKGROUND_INSTRUCTION}\n"
        f"7. {caption_prompt}\n"
    )
    if idea.strip():
        prompt += f" Context/Idea: {idea}."
    return prompt


def build_edit_prompt(instruction: str) -> str:
    return (
        "Edit this sticker.\n"
        f'Request: "{instruction}".\n'
        "Keep it funny. Keep the Anime style. Ensure text is in COMIC FONT.\n"
        "Background must be BLACK #000000.\n"
    )


def build_enhance_prompt(user_prompt: str) -> str:
    return (
        "You are a Comedy Scriptwriter.\n"
        f'User Input: "{user_prompt}".\n\n'
        "MISSION: Rewrite this into a description for a funny sticker.\n\n"
        "STRATEGY (Pick one based on input):\n"
        '1. **The Twist**: Add a contrasting element. (e.g. "Shark" -> "Shark wearing braces and smiling").\n'
        '2. **The Hyperbole**: Maximize the emotion. (e.g. "Tired" -> "Melting into a puddle of coffee").\n'
        '3. **The Roast**: If it\'s a person/face, describe a caricature. '
        '(e.g. "My boss" -> "A suit with a megaphone for a head").\n\n'
        'Constraint: Keep it visual. Mention "Anime Sticker style".\n'
    )
