"""Prompt templates sent to the generative gateway."""

from __future__ import annotations

from typing import Any, Mapping

_MOTIVATION_LABELS = {
    "impact": "Impact Social",
    "passion": "Passion",
}

VISUAL_PROMPT_TEMPLATE = """Create an elegant, luxury investment strategy summary card for BNP Paribas Private Banking.

Style requirements:
- Ultra-premium, minimalist design with plenty of white space
- Subtle BNP Paribas logo (small, top corner)
- Modern, sophisticated color palette: emerald green (#008766), gold accents, white background
- Clean typography, sans-serif fonts
- Professional financial aesthetic

Content to display:
- Profile type: {profile_type}
- Investment motivation: {motivation}
- Liquidity preference: {liquidity}
- Preferred products: {products}

Layout:
- White card with soft shadow
- Small BNP Paribas logo in top right
- Large elegant title "Votre Stratégie d'Investissement"
- Visual icon or illustration representing the investment style
- Key metrics in clean boxes
- Subtle emerald green accent lines

Make it look like a premium banking document, not a generic infographic."""


def _products(value: Any) -> str:
    if isinstance(value, (list, tuple)) and value:
        return ", ".join(str(item) for item in value)
    return "Diversifié"


def build_visual_prompt(profile: Mapping[str, Any]) -> str:
    """Render the strategy-card prompt for an onboarding profile."""

    profile_type = (
        "Profil Prudent"
        if profile.get("risk_motion_preference") == "calm"
        else "Profil Dynamique"
    )
    motivation = profile.get("motivation")
    if not isinstance(motivation, str):
        motivation = None
    return VISUAL_PROMPT_TEMPLATE.format(
        profile_type=profile_type,
        motivation=_MOTIVATION_LABELS.get(motivation or "", "Performance"),
        liquidity=profile.get("liquidity") or "Non spécifié",
        products=_products(profile.get("productTypes")),
    )


__all__ = ["VISUAL_PROMPT_TEMPLATE", "build_visual_prompt"]
