from typing import Dict, FrozenSet, Iterable, Tuple


# Keyword -> canonical specialties. Keywords are matched as lowercase
# substrings of the condition text.
SPECIALTY_TABLE_VERSION = "2024.1"

CONDITION_SPECIALTIES: Dict[str, Tuple[str, ...]] = {
    "cold": ("General Medicine", "Family Medicine"),
    "flu": ("General Medicine", "Family Medicine"),
    "influenza": ("General Medicine", "Family Medicine"),
    "fever": ("General Medicine",),
    "covid": ("General Medicine", "Pulmonology", "Infectious Disease"),
    "pneumonia": ("Pulmonology", "General Medicine"),
    "bronchitis": ("Pulmonology", "General Medicine"),
    "asthma": ("Pulmonology", "Allergy"),
    "allergy": ("Allergy", "Immunology"),
    "diabetes": ("Endocrinology", "Internal Medicine"),
    "thyroid": ("Endocrinology",),
    "hypertension": ("Cardiology", "Internal Medicine"),
    "heart": ("Cardiology",),
    "cardiac": ("Cardiology",),
    "chest pain": ("Cardiology", "Emergency Medicine"),
    "abdominal": ("Gastroenterology", "General Surgery"),
    "stomach": ("Gastroenterology", "General Medicine"),
    "liver": ("Gastroenterology", "Hepatology"),
    "kidney": ("Nephrology", "Urology"),
    "urinary": ("Urology", "Nephrology"),
    "skin": ("Dermatology",),
    "rash": ("Dermatology",),
    "bone": ("Orthopedics",),
    "fracture": ("Orthopedics", "Emergency Medicine"),
    "joint": ("Orthopedics", "Rheumatology"),
    "arthritis": ("Rheumatology", "Orthopedics"),
    "muscle": ("Orthopedics", "Sports Medicine"),
    "neurological": ("Neurology",),
    "migraine": ("Neurology",),
    "stroke": ("Neurology", "Emergency Medicine"),
    "mental": ("Psychiatry", "Psychology"),
    "depression": ("Psychiatry", "Psychology"),
    "anxiety": ("Psychiatry", "Psychology"),
    "cancer": ("Oncology",),
    "tumor": ("Oncology",),
    "eye": ("Ophthalmology",),
    "ear": ("ENT", "Otolaryngology"),
    "throat": ("ENT", "Otolaryngology"),
    "pregnancy": ("Obstetrics", "Gynecology"),
    "pediatric": ("Pediatrics",),
    "child": ("Pediatrics",),
    "dental": ("Dentistry",),
    "tooth": ("Dentistry",),
}


def map_conditions_to_specialties(conditions: Iterable[str]) -> FrozenSet[str]:
    specialties = set()
    for condition in conditions:
        if not condition:
            continue
        text = str(condition).lower()
        for keyword, mapped in CONDITION_SPECIALTIES.items():
            if keyword in text:
                specialties.update(mapped)
    return frozenset(specialties)


def specialty_matches(provider_specialties: Iterable[str], wanted: Iterable[str]) -> bool:
    """
    True when any wanted specialty appears (case-insensitively) inside any of
    the provider's specialties. "Cardiology" matches "Interventional Cardiology".
    """
    wanted_lower = [w.strip().lower() for w in wanted if w and w.strip()]
    if not wanted_lower:
        return True
    for specialty in provider_specialties:
        have = specialty.lower()
        if any(w in have for w in wanted_lower):
            return True
    return False
