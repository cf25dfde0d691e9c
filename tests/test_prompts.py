"""Tests for the strategy visual prompt."""

from advisor.prompts import build_visual_prompt


def test_calm_profile_renders_prudent_card() -> None:
    prompt = build_visual_prompt(
        {
            "risk_motion_preference": "calm",
            "motivation": "impact",
            "liquidity": "1-3 ans",
            "productTypes": ["ETF", "Obligations vertes"],
        }
    )

    assert "- Profile type: Profil Prudent" in prompt
    assert "- Investment motivation: Impact Social" in prompt
    assert "- Liquidity preference: 1-3 ans" in prompt
    assert "- Preferred products: ETF, Obligations vertes" in prompt


def test_empty_profile_falls_back_to_defaults() -> None:
    prompt = build_visual_prompt({})

    assert "- Profile type: Profil Dynamique" in prompt
    assert "- Investment motivation: Performance" in prompt
    assert "- Liquidity preference: Non spécifié" in prompt
    assert "- Preferred products: Diversifié" in prompt


def test_passion_motivation_and_unexpected_types() -> None:
    prompt = build_visual_prompt(
        {"motivation": "passion", "productTypes": "ETF", "liquidity": None}
    )

    assert "- Investment motivation: Passion" in prompt
    assert "- Preferred products: Diversifié" in prompt
    assert build_visual_prompt({"motivation": ["impact"]}).count("Performance") == 1
