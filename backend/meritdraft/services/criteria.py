"""
Static O-1A criterion tables: titles, step names, regulatory citations and
the canonical regulation text used when retrieval comes back empty.

Everything lives on an immutable ``CriterionCatalog`` that the section
generator and the draft service receive at construction time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

# Ordered as in 8 C.F.R. § 214.2(o)(3)(iii)(A)-(J).
CRITERION_IDS: tuple[str, ...] = (
    "awards",
    "membership",
    "media_coverage",
    "judging",
    "original_contributions",
    "authorship",
    "exhibitions",
    "critical_role",
    "high_salary",
    "commercial_success",
)

MERITS_SECTION_TITLE = "Final Merits Determination"
ASSEMBLY_STEP_NAME = "Assembling Document"

# Controlling authorities for the final merits pass.
MERITS_LEGAL_STANDARD = "Kazarian"
MERITS_STANDARD_OF_PROOF = "Chawathe"
MERITS_CITATIONS = (
    "(8 C.F.R. § 214.2(o)(3)(iii)) and (Matter of Chawathe, 25 I&N Dec. 369 (AAO 2010))"
)

_TITLES = {
    "awards": "Criterion 1: Receipt of Nationally or Internationally Recognized Prizes or Awards",
    "membership": "Criterion 2: Membership in Associations",
    "media_coverage": "Criterion 3: Published Material About the Person",
    "judging": "Criterion 4: Participation as a Judge",
    "original_contributions": "Criterion 5: Original Scientific Contributions",
    "authorship": "Criterion 6: Scholarly Articles",
    "exhibitions": "Criterion 7: Display of Work",
    "critical_role": "Criterion 8: Critical or Essential Capacity",
    "high_salary": "Criterion 9: High Salary",
    "commercial_success": "Criterion 10: Commercial Success",
}

_STEP_NAMES = {
    "awards": "Drafting Awards Criterion",
    "membership": "Drafting Membership Criterion",
    "media_coverage": "Drafting Media Coverage Criterion",
    "judging": "Drafting Judging Criterion",
    "original_contributions": "Drafting Original Contributions Criterion",
    "authorship": "Drafting Authorship Criterion",
    "exhibitions": "Drafting Exhibitions Criterion",
    "critical_role": "Drafting Critical Role Criterion",
    "high_salary": "Drafting High Salary Criterion",
    "commercial_success": "Drafting Commercial Success Criterion",
}

_CITATIONS = {
    "awards": "(8 C.F.R. § 214.2(o)(3)(iii)(A))",
    "membership": "(8 C.F.R. § 214.2(o)(3)(iii)(B))",
    "media_coverage": "(8 C.F.R. § 214.2(o)(3)(iii)(C))",
    "judging": "(8 C.F.R. § 214.2(o)(3)(iii)(D))",
    "original_contributions": "(8 C.F.R. § 214.2(o)(3)(iii)(E))",
    "authorship": "(8 C.F.R. § 214.2(o)(3)(iii)(F))",
    "exhibitions": "(8 C.F.R. § 214.2(o)(3)(iii)(G))",
    "critical_role": "(8 C.F.R. § 214.2(o)(3)(iii)(H))",
    "high_salary": "(8 C.F.R. § 214.2(o)(3)(iii)(I))",
    "commercial_success": "(8 C.F.R. § 214.2(o)(3)(iii)(J))",
}

_REGULATIONS = {
    "awards": (
        "Documentation of the alien's receipt of lesser nationally or internationally "
        "recognized prizes or awards for excellence in the field of endeavor "
        "(8 C.F.R. § 214.2(o)(3)(iii)(A))."
    ),
    "membership": (
        "Documentation of the alien's membership in associations in the field for which "
        "classification is sought, which require outstanding achievements of their members, "
        "as judged by recognized national or international experts in their disciplines or "
        "fields (8 C.F.R. § 214.2(o)(3)(iii)(B))."
    ),
    "media_coverage": (
        "Published material about the alien in professional or major trade publications or "
        "other major media, relating to the alien's work in the field for which "
        "classification is sought. Such evidence shall include the title, date, and author "
        "of the material, and any necessary translation (8 C.F.R. § 214.2(o)(3)(iii)(C))."
    ),
    "judging": (
        "Evidence of the alien's participation, either individually or on a panel, as a "
        "judge of the work of others in the same or an allied field of specification for "
        "which classification is sought (8 C.F.R. § 214.2(o)(3)(iii)(D))."
    ),
    "original_contributions": (
        "Evidence of the alien's original scientific, scholarly, artistic, athletic, or "
        "business-related contributions of major significance in the field "
        "(8 C.F.R. § 214.2(o)(3)(iii)(E))."
    ),
    "authorship": (
        "Evidence of the alien's authorship of scholarly articles in the field, in "
        "professional or major trade publications or other major media "
        "(8 C.F.R. § 214.2(o)(3)(iii)(F))."
    ),
    "exhibitions": (
        "Evidence of the display of the alien's work in the field at artistic exhibitions "
        "or showcases (8 C.F.R. § 214.2(o)(3)(iii)(G))."
    ),
    "critical_role": (
        "Evidence that the alien has performed in a leading or critical role for "
        "organizations or establishments that have a distinguished reputation "
        "(8 C.F.R. § 214.2(o)(3)(iii)(H))."
    ),
    "high_salary": (
        "Evidence that the alien has commanded a high salary or other significantly high "
        "remuneration for services, in relation to others in the field "
        "(8 C.F.R. § 214.2(o)(3)(iii)(I))."
    ),
    "commercial_success": (
        "Evidence of commercial successes in the performing arts, as shown by box office "
        "receipts or record, cassette, compact disk, or video sales "
        "(8 C.F.R. § 214.2(o)(3)(iii)(J))."
    ),
}

GENERIC_REGULATION = (
    "Evidence that the alien meets the regulatory criteria for extraordinary ability "
    "(8 C.F.R. § 214.2(o)(3)(iii))."
)


@dataclass(frozen=True)
class CriterionCatalog:
    """Read-only lookups keyed by criterion id, with fallbacks for unknown ids."""

    titles: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(_TITLES)))
    step_names: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(_STEP_NAMES)))
    citations: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(_CITATIONS)))
    regulations: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(_REGULATIONS)))
    generic_regulation: str = GENERIC_REGULATION

    def title(self, criterion: str) -> str:
        return self.titles.get(criterion, f"Criterion: {criterion}")

    def step_name(self, criterion: str) -> str:
        return self.step_names.get(criterion, f"Drafting {criterion} Criterion")

    def citation(self, criterion: str) -> str:
        return self.citations.get(criterion, "")

    def regulation(self, criterion: str) -> str:
        return self.regulations.get(criterion, self.generic_regulation)

    def is_known(self, criterion: str) -> bool:
        return criterion in self.titles


DEFAULT_CATALOG = CriterionCatalog()
