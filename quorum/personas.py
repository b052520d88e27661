"""Persona classification and lookup.

Maps free-text role labels to "is this a decision-making lead" and
resolves the well-known personas a deliberation needs: the lead who
renders verdicts and the executor who implements the changes.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Literal

from quorum.schemas.config import EngineConfig
from quorum.schemas.discussion import Persona, TriggerType

PersonaDomain = Literal["security", "qa", "lead", "dev", "general"]

_DEFAULT_CONFIG = EngineConfig()

_SECURITY_RE = re.compile(r"\b(security|auth|pentest|owasp|crypt|vuln)", re.IGNORECASE)
_QA_RE = re.compile(r"\b(qa|quality|test|e2e)", re.IGNORECASE)
_LEAD_DOMAIN_RE = re.compile(r"\b(lead|architect|architecture|systems)", re.IGNORECASE)
_DEV_RE = re.compile(r"\b(implementer|developer|executor|engineer)", re.IGNORECASE)


def is_lead_role(
    role: str,
    tokens: Iterable[str] = _DEFAULT_CONFIG.lead_role_tokens,
    phrases: Iterable[str] = _DEFAULT_CONFIG.lead_role_phrases,
) -> bool:
    """Return True when the role label marks a decision-making lead.

    Tokens ("PM", "lead") must appear as whole words; phrases
    ("tech lead", "director", ...) match anywhere. Case-insensitive.
    """
    lower = role.lower()
    words = set(re.findall(r"[a-z0-9]+", lower))
    if any(token.lower() in words for token in tokens):
        return True
    return any(phrase.lower() in lower for phrase in phrases)


def find_persona(
    personas: Sequence[Persona],
    names: Sequence[str],
    role_keywords: Sequence[str],
) -> Persona | None:
    """Find an active persona by exact name first, then by role keyword."""
    active = [p for p in personas if p.is_active]
    wanted = {n.lower() for n in names if n}
    for persona in active:
        if persona.name.lower() in wanted:
            return persona
    for persona in active:
        role = persona.role.lower()
        if any(keyword.lower() in role for keyword in role_keywords):
            return persona
    return None


def find_lead(
    personas: Sequence[Persona], config: EngineConfig | None = None,
) -> Persona | None:
    """Return the persona authorized to render the binding verdict.

    First active persona with a lead role, else the active persona named
    by ``config.lead_fallback_name``, else None.
    """
    config = config or _DEFAULT_CONFIG
    for persona in personas:
        if persona.is_active and is_lead_role(
            persona.role, config.lead_role_tokens, config.lead_role_phrases,
        ):
            return persona
    if config.lead_fallback_name:
        return find_persona(personas, [config.lead_fallback_name], [])
    return None


def find_executor(
    personas: Sequence[Persona], config: EngineConfig | None = None,
) -> Persona | None:
    """Return the implementer persona, or None."""
    config = config or _DEFAULT_CONFIG
    return find_persona(personas, [config.executor_name], config.executor_role_markers)


def persona_domain(persona: Persona) -> PersonaDomain:
    """Classify a persona into the review domain its role covers."""
    role = persona.role
    if _SECURITY_RE.search(role):
        return "security"
    if _QA_RE.search(role):
        return "qa"
    if _LEAD_DOMAIN_RE.search(role):
        return "lead"
    if _DEV_RE.search(role):
        return "dev"
    return "general"


def _first_in_domain(personas: Sequence[Persona], domain: PersonaDomain) -> Persona | None:
    for persona in personas:
        if persona.is_active and persona_domain(persona) == domain:
            return persona
    return None


def participating_personas(
    trigger_type: TriggerType,
    personas: Sequence[Persona],
    config: EngineConfig | None = None,
) -> list[Persona]:
    """Pick the default roster that reviews a given kind of trigger."""
    executor = find_executor(personas, config)
    lead = find_lead(personas, config)
    security = _first_in_domain(personas, "security")
    qa = _first_in_domain(personas, "qa")

    if trigger_type in (TriggerType.PR_REVIEW, TriggerType.CODE_WATCH):
        ordered = [executor, lead, security, qa]
    elif trigger_type in (TriggerType.BUILD_FAILURE, TriggerType.PRD_KICKOFF):
        ordered = [executor, lead]
    elif trigger_type == TriggerType.ISSUE_REVIEW:
        ordered = [lead, security, qa, executor]
    else:
        ordered = [lead]

    roster: dict[str, Persona] = {}
    for persona in ordered:
        if persona is not None and persona.id not in roster:
            roster[persona.id] = persona

    if not roster:
        active = [p for p in personas if p.is_active]
        if active:
            roster[active[0].id] = active[0]

    return list(roster.values())
