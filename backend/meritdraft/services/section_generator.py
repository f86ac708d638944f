"""
Prompt construction and generation for the draft's argued sections.

Per-criterion sections follow Issue-Rule-Analysis-Conclusion. The merits
section synthesizes the criteria under the two-step test.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from meritdraft.core.config import settings
from meritdraft.db.schemas import CriterionDetail
from meritdraft.services.criteria import DEFAULT_CATALOG, MERITS_CITATIONS, MERITS_SECTION_TITLE, CriterionCatalog
from meritdraft.services.fact_formatter import format_client_facts, most_compelling_fact
from meritdraft.services.legal_context_retriever import RetrievedContext

logger = logging.getLogger(__name__)


SYSTEM_INSTRUCTION = (
    "You are an expert O-1A immigration attorney. Use formal legal language. "
    "Avoid flowery adjectives. Use objective descriptors only."
)

TONE_CONSTRAINTS = """TONE CONSTRAINTS (CRITICAL):
- Do NOT use flowery adjectives (e.g., "game-changing", "revolutionary", "esteemed", "world-renowned")
- Use objective descriptors (e.g., "significant", "highly cited", "nationally recognized", "peer-reviewed")
- Avoid hyperbole and marketing language
- Maintain professional, factual tone throughout"""

CRITERION_PROMPT_TEMPLATE = """You are an expert O-1A immigration attorney drafting a support letter section.

LEGAL STANDARD:
{regulation_text}

PRECEDENT CASES:
{appeal_text}

CLIENT FACTS:
{client_facts}

FIELD OF EXPERTISE: {field_of_expertise}

TASK:
Write the "{criterion_title}" section using IRAC format:

1. Issue: State the legal requirement in plain language (1 paragraph)
2. Rule: Cite the regulation above {citation} (1 paragraph)
3. Analysis:
   - Present the client's specific achievement: {specific_fact}
   - Argue by analogy to the precedent case(s) above
   - Preempt common denial reasons (e.g., "This is not a student award but a professional recognition")
   - Link to field of expertise (3-4 paragraphs)
4. Conclusion: State that the client satisfies this criterion (1 paragraph)

OUTPUT REQUIREMENTS:
- Use formal legal language
- Include proper citations: {citation}
- 5-7 paragraphs total
- No markdown formatting (plain text)
- Write in third person about the client
- When referencing specific evidence (awards, publications, etc.), append [Exhibit __] placeholders at the end of the sentence (e.g., "as documented in the exhibits attached hereto [Exhibit A]")
- Do NOT include a section header/title - the content will be inserted under an existing header
- CRITICAL: Use EXACT numbers from CLIENT FACTS above. Do NOT estimate, round, or aggregate numbers. If CLIENT FACTS shows "Citations: 89", use "89 citations" exactly, not "350 citations" or any other number.

{tone_constraints}

Write the section now:"""

MERITS_PROMPT_TEMPLATE = """You are an expert O-1A immigration attorney drafting the Final Merits Determination section.

LEGAL STANDARD (Kazarian):
{legal_standard_text}

STANDARD OF PROOF (Chawathe):
{standard_of_proof_text}

CRITERIA SATISFIED:
The client has satisfied the following criteria:
{criteria_summary}

TASK:
Write the "Final Merits Determination" section that:

1. Opens by stating the "Preponderance of the Evidence" standard (Matter of Chawathe) to frame the legal standard immediately
2. States the legal standard (Kazarian two-part test)
3. Summarizes the evidence presented (do not repeat verbatim)
4. Argues that the totality of evidence demonstrates the client has risen to the very top of the field
5. Links the criteria together (e.g., "The client's awards (Criterion 1) are supported by their peer recognition as a Senior Area Chair (Criterion 4), which together with their highly cited publications (Criterion 6) demonstrate sustained impact")
6. Concludes by reinforcing the preponderance of evidence standard

OUTPUT REQUIREMENTS:
- Use formal legal language
- Include proper citations: {citations}
- 6-8 paragraphs
- No markdown formatting
- Write in third person
- Do NOT include a section header/title - the content will be inserted under an existing header
- CRITICAL: When referencing specific numbers (citation counts, award dates, etc.), use the EXACT numbers from the evidence presented in the criteria sections above. Do NOT estimate, round, or aggregate numbers.

{tone_constraints}

Write the section now:"""


@dataclass
class DraftSection:
    title: str
    content: str
    citations: List[str] = field(default_factory=list)


def _join_chunk_text(chunks: Iterable) -> str:
    return "".join(f"{chunk.text}\n\n" for chunk in chunks)


def extract_citations(context: RetrievedContext, criterion: str, catalog: CriterionCatalog = DEFAULT_CATALOG) -> List[str]:
    """Regulatory citation first, then appeal citations, then case citations."""
    citations: List[str] = []
    regulatory = catalog.citation(criterion)
    if regulatory:
        citations.append(regulatory)
    citations.extend(chunk.appeal_citation for chunk in context.appeals if chunk.appeal_citation)
    citations.extend(chunk.case_citation for chunk in context.cases if chunk.case_citation)
    return citations


class SectionGenerator:
    def __init__(
        self,
        completion_client,
        catalog: CriterionCatalog = DEFAULT_CATALOG,
        *,
        criterion_temperature: float = settings.CRITERION_TEMPERATURE,
        merits_temperature: float = settings.MERITS_TEMPERATURE,
        system_instruction: str = SYSTEM_INSTRUCTION,
    ) -> None:
        if completion_client is None:
            raise ValueError("completion_client is required")
        self.completion_client = completion_client
        self.catalog = catalog
        self.criterion_temperature = criterion_temperature
        self.merits_temperature = merits_temperature
        self.system_instruction = system_instruction

    def _with_system_instruction(self, prompt: str) -> str:
        return f"{self.system_instruction}\n\n{prompt}"

    # ------------------------------------------------------------------
    # Prompt builders
    # ------------------------------------------------------------------

    def build_criterion_prompt(
        self,
        criterion: str,
        detail: CriterionDetail,
        context: RetrievedContext,
        field_of_expertise: str,
    ) -> str:
        regulation_text = _join_chunk_text(context.regulations)
        if not regulation_text:
            logger.warning("No regulation context found for %s. Using fallback.", criterion)
            regulation_text = self.catalog.regulation(criterion) + "\n\n"

        citation = self.catalog.citation(criterion)
        prompt = CRITERION_PROMPT_TEMPLATE.format(
            regulation_text=regulation_text,
            appeal_text=_join_chunk_text(context.appeals),
            client_facts=format_client_facts(criterion, detail),
            field_of_expertise=field_of_expertise,
            criterion_title=self.catalog.title(criterion),
            citation=citation,
            specific_fact=most_compelling_fact(criterion, detail),
            tone_constraints=TONE_CONSTRAINTS,
        )
        return self._with_system_instruction(prompt)

    def build_merits_prompt(self, selected_criteria: Iterable[str], context: RetrievedContext) -> str:
        prompt = MERITS_PROMPT_TEMPLATE.format(
            legal_standard_text=_join_chunk_text(context.regulations),
            standard_of_proof_text=_join_chunk_text(context.appeals),
            criteria_summary=", ".join(self.catalog.title(c) for c in selected_criteria),
            citations=MERITS_CITATIONS,
            tone_constraints=TONE_CONSTRAINTS,
        )
        return self._with_system_instruction(prompt)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_criterion_section(
        self,
        criterion: str,
        detail: CriterionDetail,
        context: RetrievedContext,
        field_of_expertise: str,
    ) -> DraftSection:
        prompt = self.build_criterion_prompt(criterion, detail, context, field_of_expertise)
        content = self.completion_client.complete(prompt, self.criterion_temperature)
        return DraftSection(
            title=self.catalog.title(criterion),
            content=content,
            citations=extract_citations(context, criterion, self.catalog),
        )

    def generate_merits_section(self, selected_criteria: Iterable[str], context: RetrievedContext) -> DraftSection:
        prompt = self.build_merits_prompt(selected_criteria, context)
        content = self.completion_client.complete(prompt, self.merits_temperature)
        return DraftSection(title=MERITS_SECTION_TITLE, content=content)
