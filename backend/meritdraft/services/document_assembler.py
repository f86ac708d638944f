"""
Merges generated sections into the final petition letter. No model calls.
"""

from __future__ import annotations

from typing import Optional, Sequence

from meritdraft.services.section_generator import DraftSection

DOCUMENT_HEADING = "PETITION FOR O-1A VISA"
CONCLUSION_TEXT = (
    "Based on the evidence presented, the client satisfies the requirements for O-1A classification."
)

_MERITS_LEAD_IN = "final merits determination"
_LEAD_IN_COLON_WINDOW = 100


def _section_block(section: DraftSection) -> str:
    # Trust the model's own title rather than stacking a second one on top.
    if section.content.strip().lower().startswith(section.title.lower()):
        return f"{section.content}\n\n"
    return f"{section.title}\n{section.content}\n\n"


def strip_merits_lead_in(content: str) -> str:
    """
    Drop a leading "Final Merits Determination" header the model added
    despite instructions.
    """
    if not content.strip().lower().startswith(_MERITS_LEAD_IN):
        return content

    colon = content.find(":")
    if 0 < colon < _LEAD_IN_COLON_WINDOW:
        return content[colon + 1:].strip()

    first_line, sep, rest = content.partition("\n")
    if sep and "final merits" in first_line.lower():
        return rest.strip()
    return content


def assemble_document(
    client_name: str,
    field_of_expertise: str,
    selected_criteria: Sequence[str],
    criterion_sections: Sequence[DraftSection],
    merits_section: Optional[DraftSection],
) -> str:
    parts = [
        f"{DOCUMENT_HEADING}\n\n",
        "I. INTRODUCTION\n",
        f"{client_name}, in the field of {field_of_expertise}\n\n",
        "II. QUALIFICATIONS SUMMARY\n",
        f"The client has satisfied the following criteria: {', '.join(selected_criteria)}\n\n",
        "III. REGULATORY CRITERIA\n\n",
    ]
    parts.extend(_section_block(section) for section in criterion_sections)

    parts.append("IV. FINAL MERITS DETERMINATION\n")
    if merits_section is not None:
        parts.append(f"{strip_merits_lead_in(merits_section.content)}\n\n")

    parts.append("V. CONCLUSION\n")
    parts.append(f"{CONCLUSION_TEXT}\n")
    return "".join(parts)
