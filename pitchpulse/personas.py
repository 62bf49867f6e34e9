from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import InputError


@dataclass(frozen=True)
class Persona:
    id: str
    name: str
    description: str
    short_description: str
    keywords: tuple[str, ...]
    reason_focus: str
    values_numbers: bool = False


ANGEL = Persona(
    id="angel",
    name="Angel Investor",
    description=(
        "Angel Investor focused on vision, passion, founder-market fit, and the founder's ability "
        "to inspire and lead. Values storytelling, authenticity, and potential over perfect metrics."
    ),
    short_description="Angel Investor focused on vision, passion, founder-market fit, and storytelling",
    keywords=(
        "vision",
        "passion",
        "dream",
        "mission",
        "team",
        "founder",
        "believe",
        "story",
        "journey",
        "impact",
        "change",
        "world",
    ),
    reason_focus="vision and passion",
)

VC = Persona(
    id="vc",
    name="VC Partner",
    description=(
        "VC Partner focused on unit economics, scalability, market size, competitive moats, and path "
        "to profitability. Values data-driven arguments and clear financial metrics."
    ),
    short_description="VC Partner focused on unit economics, scalability, market size, and financial metrics",
    keywords=(
        "revenue",
        "growth",
        "margin",
        "market",
        "scale",
        "unit economics",
        "cac",
        "ltv",
        "arr",
        "mrr",
        "profit",
        "roi",
        "billion",
        "million",
    ),
    reason_focus="quantitative metrics",
    values_numbers=True,
)

PRODUCT = Persona(
    id="product",
    name="Product-Led Investor",
    description=(
        "Product-Led Investor focused on product differentiation, user experience, product-market fit, "
        "and viral potential. Values innovation, design thinking, and user-centric approach."
    ),
    short_description=(
        "Product-Led Investor focused on product differentiation, user experience, and innovation"
    ),
    keywords=(
        "user",
        "experience",
        "design",
        "feature",
        "innovation",
        "interface",
        "engagement",
        "retention",
        "viral",
        "adoption",
        "feedback",
        "intuitive",
    ),
    reason_focus="user-centric language",
)

PERSONAS = {persona.id: persona for persona in (ANGEL, VC, PRODUCT)}
PERSONA_ALIASES = {
    "angel-investor": "angel",
    "growth-investor": "vc",
    "vc-partner": "vc",
    "product-investor": "product",
}


def resolve_persona(value: Optional[str]) -> Persona:
    key = str(value or "").strip().lower()
    if not key:
        raise InputError("Missing persona.")
    key = PERSONA_ALIASES.get(key, key)
    persona = PERSONAS.get(key)
    if persona is None:
        known = ", ".join(sorted(set(PERSONAS) | set(PERSONA_ALIASES)))
        raise InputError(f'Unknown persona "{value}". Expected one of: {known}.')
    return persona
