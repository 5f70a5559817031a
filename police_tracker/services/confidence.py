"""
Confidence scoring for extracted incidents.

The score is weighted field completeness: each populated field contributes its
weight, and the sum is scaled to an integer in [0, 100].
"""

from typing import Any, Mapping

FIELD_WEIGHTS = {
    'victim_name': 0.20,
    'age': 0.10,
    'incident_date': 0.15,
    'location': 0.15,
    'county': 0.10,
    'case_type': 0.10,
    'description': 0.20,
}


def _is_populated(value: Any) -> bool:
    # None, empty strings, 0 and False carry no information
    if value is None or value is False:
        return False
    if hasattr(value, 'value'):
        value = value.value
    if isinstance(value, (int, float)) and value == 0:
        return False
    return len(str(value).strip()) > 0


def calculate_confidence_score(data: Mapping[str, Any]) -> int:
    """Return the 0-100 completeness score for an extraction result."""
    if not data:
        return 0
    score = sum(
        weight for field, weight in FIELD_WEIGHTS.items()
        if _is_populated(data.get(field))
    )
    return max(0, min(100, round(score * 100)))
