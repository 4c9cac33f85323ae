"""Deterministic placeholder pitches and verdicts used once retries run out."""

import hashlib
import random

from arena.models import ProviderScore, RequestContext, TypedError, VerdictResult

_PITCH_TEMPLATES: dict[str, str] = {
    "groq": """**{concept} for {audience}**

**The Vision**
{audience_cap} deserve a {concept_lower} built for speed and results. We deliver instant, personalized answers where today's tools make them wait.

**Key Features**
- Sub-second responses on every interaction
- Recommendations tuned to how {audience_lower} actually work
- Drop-in integration with the tools they already use

**Market Opportunity**
The {audience_lower} segment is underserved and ready for a faster option.

**Revenue Model**: freemium, with paid tiers for advanced features.""",
    "openai": """**{concept} for {audience}**

**Problem**
{audience_cap} struggle with solutions that are outdated, expensive and hard to scale.

**Our Solution**
A {concept_lower} that learns what {audience_lower} need and adapts the experience to them.

**Business Model**
- Subscription from $29 to $299 per month
- Usage-based pricing for larger teams

**Go-to-Market**
1. Direct outreach to {audience_lower} communities
2. Partnerships with established players
3. Product-led growth through a free tier""",
    "anthropic": """**{concept} for {audience}**

**Executive Summary**
We are changing how {audience_lower} experience {concept_lower} with a product that puts safety, accuracy and user control first.

**Principles**
- Human-centred design
- Transparent recommendations
- Privacy by default

**Market**
{audience_cap} are a large audience that reports broad dissatisfaction with current options.

**Mission**: make {concept_lower} work for {audience_lower} everywhere.""",
}

_GENERIC_TEMPLATE = """**{concept} for {audience}**

**Pitch from {provider}**
{audience_cap} need a better {concept_lower}. Ours is simpler to adopt, cheaper to run and designed around the way {audience_lower} already work.

**Plan**
- Launch with a focused pilot group
- Grow through referrals and partnerships
- Charge a simple monthly subscription"""

_SCORE_RANGE = (7, 9)


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def mock_pitch(provider: str, context: RequestContext) -> str:
    """Placeholder pitch, identical for identical (provider, topics)."""
    concept = context.topic_a.strip() or "Product"
    audience = context.topic_b.strip() or "everyone"
    template = _PITCH_TEMPLATES.get(provider, _GENERIC_TEMPLATE)
    return template.format(
        concept=concept.upper(),
        audience=audience.upper(),
        concept_lower=concept.lower(),
        audience_lower=audience.lower(),
        audience_cap=_capitalize(audience),
        provider=provider,
    )


def _derive_seed(context: RequestContext, pitches: dict[str, str]) -> int:
    digest = hashlib.sha256()
    digest.update(context.topic_a.encode("utf-8"))
    digest.update(b"\x00")
    digest.update(context.topic_b.encode("utf-8"))
    for name in sorted(pitches):
        digest.update(b"\x00")
        digest.update(name.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(pitches[name].encode("utf-8"))
    return int.from_bytes(digest.digest()[:8], "big")


def pick_winner(scores: dict[str, int], providers: list[str]) -> str:
    """Highest score; ties go to the provider listed first."""
    best = providers[0]
    for name in providers[1:]:
        if scores[name] > scores[best]:
            best = name
    return best


def mock_verdict(
    context: RequestContext,
    pitches: dict[str, str],
    providers: list[str],
    seed: int | None = None,
    error: TypedError | None = None,
) -> VerdictResult:
    """Placeholder verdict with scores in [7, 9].

    Without ``seed`` the scores derive from a hash of the inputs, so the
    same round always gets the same fallback verdict.
    """
    rng = random.Random(seed if seed is not None else _derive_seed(context, pitches))
    raw_scores = {name: rng.randint(*_SCORE_RANGE) for name in providers}
    winner = pick_winner(raw_scores, providers)

    scores = {
        name: ProviderScore(
            provider=name,
            score=score,
            reasoning=f"{name} delivered a solid pitch for {context.topic_b}.",
        )
        for name, score in raw_scores.items()
    }
    reasoning = (
        f"After comparing all {len(providers)} pitches for a {context.topic_a} aimed at "
        f"{context.topic_b}, {winner} comes out ahead with {raw_scores[winner]}/10. "
        "Every pitch would benefit from sharper customer validation and a clearer competitive analysis."
    )
    return VerdictResult(
        scores=scores,
        winner=winner,
        reasoning=reasoning,
        degraded=True,
        error=error,
    )
