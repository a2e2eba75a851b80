"""Best-effort parsing of the analysis output into findings.

The text has already been through the de-identification guard. Only the
JSON shape is checked here; field values are taken leniently.
"""

import json
from typing import Any

from necromancer.analysis.exceptions import FindingsParseError
from necromancer.analysis.models import Finding

_RISK_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}


def parse_findings(text: str) -> list[Finding]:
    """Parse *text* as a JSON array of finding objects.

    Accepts code-fenced output, prose around the array, and a
    ``{"findings": [...]}`` wrapper. Non-object items are skipped.

    Raises:
        FindingsParseError: if no JSON array can be decoded.
    """
    cleaned = _strip_wrapping(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise FindingsParseError(f"Invalid JSON response: {exc}") from exc

    if isinstance(parsed, dict):
        parsed = parsed.get("findings", [parsed])
    if not isinstance(parsed, list):
        raise FindingsParseError("JSON response must be an array of findings")
    return [_build_finding(item) for item in parsed if isinstance(item, dict)]


def sort_by_risk(findings: list[Finding]) -> list[Finding]:
    """Critical > High > Medium > Low > anything else; stable within a level."""
    return sorted(
        findings,
        key=lambda f: _RISK_ORDER.get(f.probability.strip().lower(), 0),
        reverse=True,
    )


def _strip_wrapping(text: str) -> str:
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        lines = cleaned.splitlines()
        if lines and lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines).strip()
    if cleaned.startswith(("[", "{")):
        return cleaned
    start, end = cleaned.find("["), cleaned.rfind("]")
    if start != -1 and end > start:
        return cleaned[start:end + 1]
    return cleaned


def _build_finding(raw: dict[str, Any]) -> Finding:
    vectors = _str_list(raw, "ExecutionVectors") or _str_list(raw, "Commands")
    if not vectors:
        vectors = _str_list(raw, "Command")
    return Finding(
        title=_str(raw, "Title") or "Untitled finding",
        category=_str(raw, "Category"),
        artifact=_str(raw, "Artifact"),
        reasoning=_str(raw, "Reasoning") or _str(raw, "Description"),
        mutation=_str(raw, "Mutation"),
        resurrected_chain=_str(raw, "ResurrectedChain") or _str(raw, "ExploitChain"),
        execution_vectors=vectors,
        visual_path=_str(raw, "VisualPath"),
        human_blind_spot=_str_list(raw, "HumanBlindSpot"),
        impact=_str_list(raw, "Impact"),
        why_this_exists=_str(raw, "WhyThisExists"),
        probability=_str(raw, "Probability") or "Unknown",
        risk_justification=_str(raw, "RiskJustification"),
        detection_rules=_str_list(raw, "DetectionRules"),
        mitigation=_str(raw, "Mitigation"),
        entity_name=_str(raw, "EntityName"),
        entity_type=_str(raw, "EntityType"),
        entity_status=_str(raw, "EntityStatus"),
        entity_origin=_str(raw, "EntityOrigin"),
        mitre_attack=_str_list(raw, "MitreAttack"),
    )


def _str(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _str_list(raw: dict[str, Any], key: str) -> list[str]:
    value = raw.get(key)
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and not isinstance(item, (dict, list))]
