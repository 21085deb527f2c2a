"""
Schema governance analysis for the universal schema.

Works on plain snapshots of an organization's entities and dynamic fields:

- naming compliance of dynamic field names (snake_case, length, reserved and
  ambiguous words) with suggested renames
- entity type registry with field usage per type
- field usage statistics and redundant field detection
- duplication risks between entity types (edit-distance similarity and
  plural/singular pairs)
- naming pattern statistics
- reserved word violations
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional
from uuid import UUID

from hera_erp.services.universal import as_utc

SNAKE_CASE = re.compile(r"^[a-z]+(_[a-z]+)*$")
STARTS_WITH_LETTER = re.compile(r"^[a-zA-Z]")
CAMEL_CASE = re.compile(r"^[a-z][a-zA-Z]*$")
PASCAL_CASE = re.compile(r"^[A-Z][a-zA-Z]*$")
UPPER_CASE = re.compile(r"^[A-Z]+(_[A-Z]+)*$")
KEBAB_CASE = re.compile(r"^[a-z]+(-[a-z]+)*$")

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 50
UNUSED_AFTER_DAYS = 30

RESERVED_WORDS = frozenset({
    "select", "from", "where", "order", "group", "by", "having",
    "insert", "update", "delete", "create", "alter", "drop",
    "table", "index", "view", "trigger", "function", "procedure",
    "user", "role", "grant", "revoke", "commit", "rollback",
    "and", "or", "not", "in", "exists", "between", "like",
    "null", "true", "false", "case", "when", "then", "else",
})

POSTGRESQL_RESERVED = frozenset({
    "all", "analyse", "analyze", "and", "any", "array", "as", "asc",
    "authorization", "binary", "both", "case", "cast", "check", "collate",
    "column", "constraint", "create", "current_date", "current_time",
    "current_timestamp", "current_user", "default", "deferrable", "desc",
    "distinct", "do", "else", "end", "except", "false", "for", "foreign",
    "from", "grant", "group", "having", "in", "initially", "intersect",
    "into", "leading", "limit", "localtime", "localtimestamp", "new",
    "not", "null", "off", "offset", "old", "on", "only", "or", "order",
    "placing", "primary", "references", "returning", "select", "session_user",
    "some", "symmetric", "table", "then", "to", "trailing", "true", "union",
    "unique", "user", "using", "when", "where", "with",
})

AMBIGUOUS_TERMS = frozenset({
    "data", "info", "value", "item", "thing", "stuff", "misc",
    "other", "temp", "tmp", "test", "flag", "status", "type",
})

STANDARD_FIELDS = (
    "id", "created_at", "updated_at", "created_by", "updated_by",
    "is_active", "name", "description", "email", "phone", "address",
    "city", "state", "country", "postal_code", "amount", "quantity",
    "price", "total", "date", "start_date", "end_date", "status",
    "category", "tags", "notes", "reference_number", "external_id",
)

SYSTEM_ENTITY_TYPES = frozenset({
    "user", "organization", "role", "permission",
    "audit_log", "system_config", "notification",
})

ABBREVIATIONS = {
    "qty": "quantity",
    "amt": "amount",
    "desc": "description",
    "addr": "address",
    "tel": "telephone",
    "dob": "date_of_birth",
    "cat": "category",
}

# Multiplied together to give the confidence of a suggested rename
_CONFIDENCE_FACTORS = {
    "reserved_word": 0.9,
    "not_snake_case": 0.8,
    "ambiguous_term": 0.7,
    "starts_with_number": 0.85,
    "invalid_length": 0.9,
}


@dataclass
class FieldRecord:
    """One core_dynamic_data row, reduced to what governance needs."""

    field_name: str
    field_type: str
    entity_id: UUID
    entity_type: str


@dataclass
class EntityRecord:
    id: UUID
    entity_type: str
    created_at: datetime
    field_names: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# String similarity
# ---------------------------------------------------------------------------


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert, delete, substitute all cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]; two empty strings are identical."""
    longer = a if len(a) >= len(b) else b
    if not longer:
        return 1.0
    return (len(longer) - levenshtein(a, b)) / len(longer)


# ---------------------------------------------------------------------------
# Naming rules
# ---------------------------------------------------------------------------


def naming_violations(name: str) -> list[str]:
    found = []
    if not SNAKE_CASE.match(name):
        found.append("not_snake_case")
    if not STARTS_WITH_LETTER.match(name):
        found.append("starts_with_number")
    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        found.append("invalid_length")
    if name.lower() in RESERVED_WORDS:
        found.append("reserved_word")
    if name.lower() in AMBIGUOUS_TERMS:
        found.append("ambiguous_term")
    return found


def violation_type(violations: list[str]) -> str:
    if "reserved_word" in violations:
        return "reserved_word"
    if "ambiguous_term" in violations:
        return "ambiguous"
    if "not_snake_case" in violations or "invalid_length" in violations:
        return "non-semantic"
    return "inconsistent"


def rename_confidence(violations: list[str]) -> float:
    confidence = 1.0
    for violation in violations:
        confidence *= _CONFIDENCE_FACTORS.get(violation, 1.0)
    return round(confidence, 2)


def suggest_name(name: str) -> str:
    """
    Suggest a snake_case replacement.

    >>> suggest_name("custQty")
    'cust_quantity'
    """
    suggested = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    suggested = suggested.lower()
    suggested = re.sub(r"[\s-]+", "_", suggested)
    suggested = re.sub(r"[^a-z0-9_]", "", suggested)
    suggested = re.sub(r"^[0-9]+", "", suggested).lstrip("_")
    return "_".join(ABBREVIATIONS.get(part, part) for part in suggested.split("_"))


def _examples_for(name: str) -> list[str]:
    examples = []
    if "data" in name:
        examples.extend(["customer_email", "order_date", "product_description"])
    if len(name) < MIN_NAME_LENGTH:
        examples.extend(["quantity", "identifier", "description"])
    return examples


def analyze_naming_compliance(fields: Iterable[FieldRecord]) -> dict:
    """Judge every distinct field name once against the naming rules."""
    types_by_name: dict[str, set[str]] = {}
    for record in fields:
        types_by_name.setdefault(record.field_name, set()).add(record.entity_type)

    violations: list[dict] = []
    compliant: list[str] = []

    for name in sorted(types_by_name):
        found = naming_violations(name)
        if found:
            violations.append({
                "field_name": name,
                "suggested_name": suggest_name(name),
                "violation_type": violation_type(found),
                "violations": found,
                "entity_types": sorted(types_by_name[name]),
                "confidence": rename_confidence(found),
                "examples": _examples_for(name),
            })
        else:
            compliant.append(name)

    # Compliant names that differ only by underscores (first_name vs firstname)
    variants: dict[str, list[str]] = {}
    for name in compliant:
        variants.setdefault(name.lower().replace("_", ""), []).append(name)

    inconsistent = set()
    for names in variants.values():
        if len(names) < 2:
            continue
        for name in names:
            others = [n for n in names if n != name]
            inconsistent.add(name)
            violations.append({
                "field_name": name,
                "suggested_name": others[0],
                "violation_type": "inconsistent",
                "violations": ["inconsistent_variant"],
                "entity_types": sorted(types_by_name[name]),
                "confidence": 0.8,
                "examples": others,
            })

    compliant = [name for name in compliant if name not in inconsistent]
    analysed = len(compliant) + len(violations)

    return {
        "compliant_fields": len(compliant),
        "non_compliant_fields": violations,
        "compliance_score": round(len(compliant) / analysed * 100) if analysed else 100,
        "suggested_fixes": sorted(violations, key=lambda v: v["confidence"], reverse=True)[:10],
        "total_fields_analyzed": len(types_by_name),
    }


# ---------------------------------------------------------------------------
# Entity registry and field usage
# ---------------------------------------------------------------------------


def build_entity_registry(entities: Iterable[EntityRecord], now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    registry: dict[str, dict[str, Any]] = {}

    for entity in entities:
        created = as_utc(entity.created_at)
        entry = registry.get(entity.entity_type)
        if entry is None:
            entry = registry[entity.entity_type] = {
                "entity_type": entity.entity_type,
                "usage_count": 0,
                "field_patterns": Counter(),
                "first_used": created,
                "last_used": created,
                "is_system_type": entity.entity_type in SYSTEM_ENTITY_TYPES,
            }
        entry["usage_count"] += 1
        entry["field_patterns"].update(entity.field_names)
        entry["first_used"] = min(entry["first_used"], created)
        entry["last_used"] = max(entry["last_used"], created)

    cutoff = now - timedelta(days=UNUSED_AFTER_DAYS)
    definitions = []
    for entry in sorted(registry.values(), key=lambda e: e["entity_type"]):
        definitions.append({
            **entry,
            "field_patterns": dict(entry["field_patterns"]),
            "first_used": entry["first_used"].isoformat(),
            "last_used": entry["last_used"].isoformat(),
        })

    return {
        "system_types": [d for d in definitions if d["is_system_type"]],
        "user_types": [d for d in definitions if not d["is_system_type"]],
        "unused_types": sorted(t for t, e in registry.items() if e["last_used"] < cutoff),
        "total_types": len(registry),
    }


def find_redundant_fields(field_names: Iterable[str]) -> list[dict]:
    """Group names that normalize to near-identical keys (customer_name / customerName)."""
    groups: dict[str, list[str]] = {}
    for name in field_names:
        normalized = re.sub(r"[_-]", "", name.lower())
        for key, members in groups.items():
            if similarity(normalized, key) > 0.8:
                members.append(name)
                break
        else:
            groups[normalized] = [name]

    return [
        {
            "concept": key,
            "fields": members,
            "suggested_field": members[0],
            "redundancy_score": len(members),
        }
        for key, members in groups.items()
        if len(members) > 1
    ]


def analyze_field_usage(fields: list[FieldRecord], entity_count: int) -> dict:
    counts: Counter = Counter()
    types: dict[str, set[str]] = {}
    for record in fields:
        counts[record.field_name] += 1
        types.setdefault(record.field_name, set()).add(record.field_type)

    most_used = [
        {
            "field_name": name,
            "usage_count": count,
            "field_types": sorted(types[name]),
            "is_standard": name in STANDARD_FIELDS,
        }
        for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:20]
    ]

    return {
        "most_used_fields": most_used,
        "redundant_fields": find_redundant_fields(sorted(counts)),
        "missing_standard_fields": [name for name in STANDARD_FIELDS if counts[name] < 10],
        "field_type_distribution": dict(Counter(record.field_type for record in fields)),
        "total_unique_fields": len(counts),
        "average_fields_per_entity": round(len(fields) / entity_count, 2) if entity_count else 0,
    }


# ---------------------------------------------------------------------------
# Duplication risks
# ---------------------------------------------------------------------------


def consolidated_name(first: str, second: str) -> str:
    if first.endswith("s") and not second.endswith("s"):
        return second
    if second.endswith("s") and not first.endswith("s"):
        return first
    if abs(len(first) - len(second)) < 3:
        return first if len(first) < len(second) else second
    return first


def identify_duplication_risks(type_counts: dict[str, int]) -> list[dict]:
    """
    Entity types that look like the same concept.

    Plural/singular pairs are always high risk; other pairs are graded by
    similarity.
    """
    risks = []
    names = sorted(type_counts)
    plural_pairs = set()

    for name in names:
        if name.endswith("s") and name[:-1] in type_counts:
            singular = name[:-1]
            plural_pairs.add(frozenset((name, singular)))
            risks.append({
                "entity_type": name,
                "similar_types": [singular],
                "risk_level": "high",
                "similarity": round(similarity(name, singular), 4),
                "suggested_consolidation": singular,
                "examples": [
                    {"type": name, "count": type_counts[name]},
                    {"type": singular, "count": type_counts[singular]},
                ],
            })

    for i, first in enumerate(names):
        for second in names[i + 1:]:
            if frozenset((first, second)) in plural_pairs:
                continue
            score = similarity(first, second)
            if score <= 0.7:
                continue
            risks.append({
                "entity_type": first,
                "similar_types": [second],
                "risk_level": "high" if score > 0.9 else "medium" if score > 0.8 else "low",
                "similarity": round(score, 4),
                "suggested_consolidation": consolidated_name(first, second),
                "examples": [
                    {"type": first, "count": type_counts[first]},
                    {"type": second, "count": type_counts[second]},
                ],
            })

    return risks


# ---------------------------------------------------------------------------
# Naming patterns and reserved words
# ---------------------------------------------------------------------------


def case_style(name: str) -> str:
    if SNAKE_CASE.match(name):
        return "snake_case"
    if CAMEL_CASE.match(name):
        return "camelCase"
    if PASCAL_CASE.match(name):
        return "PascalCase"
    if UPPER_CASE.match(name):
        return "UPPER_CASE"
    if KEBAB_CASE.match(name):
        return "kebab-case"
    return "mixed"


def analyze_naming_patterns(field_names: Iterable[str]) -> dict:
    styles = Counter({style: 0 for style in ("snake_case", "camelCase", "PascalCase", "UPPER_CASE", "kebab-case", "mixed")})
    prefixes: Counter = Counter()
    suffixes: Counter = Counter()
    words: Counter = Counter()

    for name in field_names:
        styles[case_style(name)] += 1
        parts = [p for p in re.split(r"[_\-\s]+", name) if p]
        words.update(p for p in parts if len(p) > 2)
        if parts:
            prefixes[parts[0]] += 1
            suffixes[parts[-1]] += 1

    return {
        "case_styles": dict(styles),
        "common_prefixes": prefixes.most_common(10),
        "common_suffixes": suffixes.most_common(10),
        "common_words": words.most_common(20),
    }


def check_reserved_words(fields: Iterable[FieldRecord]) -> list[dict]:
    violations = []
    for record in fields:
        lowered = record.field_name.lower()
        if lowered in RESERVED_WORDS:
            violations.append({
                "field_name": record.field_name,
                "entity_id": str(record.entity_id),
                "severity": "high",
                "suggestion": f"{record.field_name}_value",
                "reason": "SQL reserved word",
            })
        if lowered in POSTGRESQL_RESERVED:
            violations.append({
                "field_name": record.field_name,
                "entity_id": str(record.entity_id),
                "severity": "medium",
                "suggestion": f"{record.field_name}_field",
                "reason": "PostgreSQL reserved word",
            })
    return violations


def governance_report(entities: list[EntityRecord], fields: list[FieldRecord]) -> dict:
    """Full governance report for one organization."""
    type_counts = Counter(entity.entity_type for entity in entities)
    return {
        "naming_compliance": analyze_naming_compliance(fields),
        "entity_registry": build_entity_registry(entities),
        "field_analysis": analyze_field_usage(fields, len(entities)),
        "duplication_risks": identify_duplication_risks(dict(type_counts)),
        "naming_patterns": analyze_naming_patterns(record.field_name for record in fields),
        "reserved_word_violations": check_reserved_words(fields),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
