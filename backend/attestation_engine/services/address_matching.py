"""
Address matching collaborator.

The attestation generator never matches addresses itself; it commits whatever
an AddressMatcher decides. NormalizedAddressMatcher is the default matcher:
component-wise comparison after case/punctuation/abbreviation folding.
"""

import re
from typing import Dict, Protocol

from ..models.attestation import AddressMatchResult, VerifiedAddress


STREET_ABBREVIATIONS: Dict[str, str] = {
    "street": "st",
    "avenue": "ave",
    "road": "rd",
    "boulevard": "blvd",
    "drive": "dr",
    "lane": "ln",
    "court": "ct",
    "place": "pl",
    "parkway": "pkwy",
    "highway": "hwy",
    "north": "n",
    "south": "s",
    "east": "e",
    "west": "w",
    "apartment": "apt",
    "suite": "ste",
}

# Component weights; sum to 1.0
COMPONENT_WEIGHTS: Dict[str, float] = {
    "street": 0.4,
    "unit": 0.1,
    "city": 0.2,
    "state": 0.1,
    "postal_code": 0.2,
}

MATCH_THRESHOLD = 0.9


class AddressMatcher(Protocol):
    def match(self, reference: VerifiedAddress, candidate: VerifiedAddress) -> AddressMatchResult:
        ...


def normalize_component(value) -> str:
    if not value:
        return ""
    words = re.sub(r"[^\w\s]", " ", str(value).lower()).split()
    return " ".join(STREET_ABBREVIATIONS.get(w, w) for w in words)


def _postal_prefix(value) -> str:
    # ZIP+4 compares on the 5-digit prefix
    return normalize_component(value).replace(" ", "")[:5]


class NormalizedAddressMatcher:
    """Weighted component comparison of two addresses."""

    def __init__(self, threshold: float = MATCH_THRESHOLD):
        self.threshold = threshold

    def match(self, reference: VerifiedAddress, candidate: VerifiedAddress) -> AddressMatchResult:
        scores = {
            "street": normalize_component(reference.street) == normalize_component(candidate.street),
            "unit": normalize_component(reference.unit) == normalize_component(candidate.unit),
            "city": normalize_component(reference.city) == normalize_component(candidate.city),
            "state": normalize_component(reference.state) == normalize_component(candidate.state),
            "postal_code": _postal_prefix(reference.postal_code) == _postal_prefix(candidate.postal_code),
        }
        confidence = float(round(sum(COMPONENT_WEIGHTS[name] for name, ok in scores.items() if ok), 4))
        return AddressMatchResult(verified=confidence >= self.threshold, confidence=confidence)
