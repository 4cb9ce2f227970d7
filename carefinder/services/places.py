from typing import List, Optional


# Spellings that refer to the same city in provider data and geocoder output
CITY_ALIASES = (
    ("Bengaluru", "Bangalore"),
    ("Mumbai", "Bombay"),
    ("Delhi", "New Delhi"),
    ("Kolkata", "Calcutta"),
    ("Chennai", "Madras"),
    ("Pune", "Poona"),
    ("Gurugram", "Gurgaon"),
    ("Thiruvananthapuram", "Trivandrum"),
    ("Mysuru", "Mysore"),
)


def normalize_place(value: Optional[str]) -> str:
    return " ".join((value or "").split()).lower()


def city_variants(city: Optional[str]) -> List[str]:
    """Lowercase spellings to match for ``city``, the input first."""
    name = normalize_place(city)
    if not name:
        return []
    variants = [name]
    for group in CITY_ALIASES:
        lowered = [alias.lower() for alias in group]
        if any(alias in name for alias in lowered):
            for alias in lowered:
                if alias not in variants:
                    variants.append(alias)
    return variants


def place_matches(provider_place: Optional[str], variants: List[str]) -> bool:
    """Case-insensitive substring match of any variant inside the provider's place."""
    have = normalize_place(provider_place)
    if not have:
        return False
    return any(variant in have for variant in variants)
