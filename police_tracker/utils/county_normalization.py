"""County name normalization utilities."""

from typing import Any, Dict, Iterable, List

UNKNOWN_COUNTY = 'Unknown County'

# Major cities and common variants mapped to their county
COUNTY_ALIASES = {
    # Nairobi variations
    'nairobi city': 'Nairobi',
    'nairobi county': 'Nairobi',
    'nairobi metropolitan': 'Nairobi',
    # Mombasa variations
    'mombasa city': 'Mombasa',
    'mombasa county': 'Mombasa',
    'mombasa island': 'Mombasa',
    # Kisumu variations
    'kisumu city': 'Kisumu',
    'kisumu county': 'Kisumu',
    # Other major towns
    'nakuru town': 'Nakuru',
    'eldoret': 'Uasin Gishu',
    'thika': 'Kiambu',
    'machakos town': 'Machakos',
    'kitale': 'Trans Nzoia',
    'malindi': 'Kilifi',
    'lamu town': 'Lamu',
    'garissa town': 'Garissa',
    'isiolo town': 'Isiolo',
    'marsabit town': 'Marsabit',
    'mandera town': 'Mandera',
    'wajir town': 'Wajir',
    'moyale': 'Marsabit',
    'kakamega town': 'Kakamega',
    'bungoma town': 'Bungoma',
    'kericho town': 'Kericho',
    'bomet town': 'Bomet',
    'nyeri town': 'Nyeri',
    'embu town': 'Embu',
    'meru town': 'Meru',
}

# Any value mentioning one of these is that county
SUBSTRING_COUNTIES = ('Nairobi', 'Mombasa', 'Kisumu')


def normalize_county_name(county: str | None) -> str:
    """
    Normalize a county name so variants aggregate together.

    "Nairobi", "Nairobi City" and "Nairobi County" all become "Nairobi";
    known towns map to their county. Unrecognized values are returned trimmed.

    Args:
        county: Raw county or town name

    Returns:
        Normalized county name, or 'Unknown County' if empty
    """
    if not county or not county.strip():
        return UNKNOWN_COUNTY

    county = county.strip()
    county_lower = county.lower()

    for name in SUBSTRING_COUNTIES:
        if name.lower() in county_lower:
            return name

    return COUNTY_ALIASES.get(county_lower, county)


def _county_of(case: Any) -> str | None:
    if isinstance(case, dict):
        return case.get('county')
    return getattr(case, 'county', None)


def get_county_statistics(cases: Iterable[Any]) -> List[Dict[str, Any]]:
    """Incident counts per normalized county, most frequent first."""
    cases = list(cases or [])
    if not cases:
        return []

    counts: Dict[str, int] = {}
    for case in cases:
        county = normalize_county_name(_county_of(case))
        counts[county] = counts.get(county, 0) + 1

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    total = len(cases)
    return [
        {
            'county': county,
            'count': count,
            'rank': index + 1,
            'percentage': int(count * 100 / total + 0.5),
        }
        for index, (county, count) in enumerate(ranked)
    ]


def get_top_counties(cases: Iterable[Any], limit: int = 3) -> List[Dict[str, Any]]:
    return get_county_statistics(cases)[:limit]
