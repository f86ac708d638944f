"""
Renders parsed criterion details into text.

Two views over the same record:
  * ``extract_fact_summary``: names, titles and counts joined by spaces, used
    as the tail of the embedding query.
  * ``format_client_facts``: labeled multi-line block injected into the
    drafting prompt. Numbers are printed exactly as parsed, never rounded.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from meritdraft.db.schemas import (
    AuthorshipDetail,
    AwardsDetail,
    CriterionDetail,
    GenericDetail,
    JudgingDetail,
    OriginalContributionsDetail,
)

DEFAULT_COMPELLING_FACT = "their achievements in the field"


def format_number(value: Union[int, float]) -> str:
    """Print a count or amount verbatim; integral floats lose the ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _impact_lines(importance: Optional[str], impact: Optional[str]) -> list[str]:
    lines = []
    if importance:
        lines.append(f"Significance: {importance}")
    if impact:
        lines.append(f"Impact: {impact}")
    return lines


def _render_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


# ============================================================================
# Summary for embedding queries
# ============================================================================

def extract_fact_summary(criterion: str, detail: CriterionDetail) -> str:
    facts: list[str] = []

    if isinstance(detail, AwardsDetail):
        for award in detail.awards:
            if award.name:
                facts.append(award.name)
            if award.description:
                facts.append(award.description)

    elif isinstance(detail, JudgingDetail):
        if detail.venue:
            facts.append(detail.venue)
        if detail.role:
            facts.append(detail.role)
        if detail.papers_reviewed is not None:
            facts.append(f"{format_number(detail.papers_reviewed)} papers reviewed")

    elif isinstance(detail, AuthorshipDetail):
        for pub in detail.publications:
            if pub.title:
                facts.append(pub.title)
            if pub.journal:
                facts.append(pub.journal)
            if pub.citations is not None:
                facts.append(f"{format_number(pub.citations)} citations")

    elif isinstance(detail, OriginalContributionsDetail):
        for contribution in detail.contributions:
            if contribution.title:
                facts.append(contribution.title)
            if contribution.impact:
                facts.append(contribution.impact)

    elif isinstance(detail, GenericDetail) and detail.description:
        facts.append(detail.description)

    return " ".join(facts)


# ============================================================================
# Verbose block for prompts
# ============================================================================

def format_client_facts(criterion: str, detail: CriterionDetail) -> str:
    if isinstance(detail, AwardsDetail):
        blocks = []
        for award in detail.awards:
            head = f"Award: {award.name}" if award.name else ""
            if award.date:
                head += f" (Date: {award.date})"
            lines = [head.strip()] if head.strip() else []
            if award.description:
                lines.append(f"Description: {award.description}")
            lines.extend(_impact_lines(award.importance, award.impact))
            blocks.append("\n".join(lines))
        return "\n".join(blocks)

    if isinstance(detail, JudgingDetail):
        lines = []
        if detail.venue:
            lines.append(f"Venue: {detail.venue}")
        if detail.role:
            lines.append(f"Role: {detail.role}")
        if detail.papers_reviewed is not None:
            lines.append(f"Papers Reviewed: {format_number(detail.papers_reviewed)}")
        lines.extend(_impact_lines(detail.importance, detail.impact))
        return "\n".join(lines)

    if isinstance(detail, AuthorshipDetail):
        blocks = []
        for i, pub in enumerate(detail.publications, start=1):
            lines = [f"Publication {i}:"]
            if pub.title:
                lines.append(f"Title: {pub.title}")
            if pub.journal:
                lines.append(f"Journal: {pub.journal}")
            if pub.impact_factor is not None and pub.impact_factor > 0:
                lines.append(f"Impact Factor: {format_number(pub.impact_factor)}")
            if pub.citations is not None:
                lines.append(f"Citations: {format_number(pub.citations)}")
            lines.extend(_impact_lines(pub.importance, pub.impact))
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    if isinstance(detail, OriginalContributionsDetail):
        blocks = []
        for i, contribution in enumerate(detail.contributions, start=1):
            lines = [f"Contribution {i}:"]
            if contribution.title:
                lines.append(f"Title: {contribution.title}")
            lines.extend(_impact_lines(contribution.importance, contribution.impact))
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    # Generic bag: the description, or every supplied key when there is none.
    lines = []
    if detail.description:
        lines.append(detail.description)
    else:
        for key, value in detail.extra_fields.items():
            lines.append(f"{key}: {_render_value(value)}")
    lines.extend(_impact_lines(detail.importance, detail.impact))
    return "\n".join(lines)


def most_compelling_fact(criterion: str, detail: CriterionDetail) -> str:
    """The single fact the Analysis paragraph should lead with."""
    if isinstance(detail, AwardsDetail) and detail.awards and detail.awards[0].name:
        return detail.awards[0].name
    if isinstance(detail, JudgingDetail) and detail.venue:
        return f"serving as {detail.role or 'a reviewer'} at {detail.venue}"
    if isinstance(detail, AuthorshipDetail) and detail.publications and detail.publications[0].title:
        return detail.publications[0].title
    return DEFAULT_COMPELLING_FACT
