from meritdraft.services.document_assembler import CONCLUSION_TEXT, assemble_document, strip_merits_lead_in
from meritdraft.services.section_generator import DraftSection

AWARDS_TITLE = "Criterion 1: Receipt of Nationally or Internationally Recognized Prizes or Awards"
JUDGING_TITLE = "Criterion 4: Participation as a Judge"


def _assemble(sections, merits_text="The totality of the evidence..."):
    return assemble_document(
        "Dr. Jane Doe",
        "Artificial Intelligence",
        ["awards", "judging"],
        sections,
        DraftSection(title="Final Merits Determination", content=merits_text),
    )


def test_document_has_five_sections_in_order():
    doc = _assemble(
        [
            DraftSection(title=AWARDS_TITLE, content="Awards analysis."),
            DraftSection(title=JUDGING_TITLE, content="Judging analysis."),
        ]
    )

    assert doc.startswith("PETITION FOR O-1A VISA\n\nI. INTRODUCTION\nDr. Jane Doe, in the field of Artificial Intelligence\n\n")
    assert "II. QUALIFICATIONS SUMMARY\nThe client has satisfied the following criteria: awards, judging\n\n" in doc
    headings = ["I. INTRODUCTION", "II. QUALIFICATIONS SUMMARY", "III. REGULATORY CRITERIA",
                "IV. FINAL MERITS DETERMINATION", "V. CONCLUSION"]
    positions = [doc.index(h) for h in headings]
    assert positions == sorted(positions)
    assert doc.index(AWARDS_TITLE) < doc.index(JUDGING_TITLE) < doc.index("IV. FINAL MERITS DETERMINATION")
    assert f"{AWARDS_TITLE}\nAwards analysis.\n\n" in doc
    assert doc.endswith(f"V. CONCLUSION\n{CONCLUSION_TEXT}\n")


def test_title_is_not_duplicated_when_content_already_has_it():
    content = f"{JUDGING_TITLE.upper()}\n\nThe beneficiary served as Senior Area Chair."
    doc = _assemble([DraftSection(title=JUDGING_TITLE, content=content)])

    assert doc.lower().count(JUDGING_TITLE.lower()) == 1
    assert f"III. REGULATORY CRITERIA\n\n{content}\n\n" in doc


def test_merits_lead_in_up_to_colon_is_stripped():
    doc = _assemble([], merits_text="Final Merits Determination: The beneficiary has shown sustained acclaim.")

    assert "IV. FINAL MERITS DETERMINATION\nThe beneficiary has shown sustained acclaim.\n\n" in doc


def test_merits_lead_in_line_is_stripped_when_no_early_colon():
    text = "FINAL MERITS DETERMINATION\nUnder the preponderance of the evidence standard the record suffices."
    assert strip_merits_lead_in(text) == (
        "Under the preponderance of the evidence standard the record suffices."
    )


def test_merits_colon_beyond_window_falls_back_to_line_break():
    text = "Final Merits Determination\n" + "a" * 120 + ": late colon"
    assert strip_merits_lead_in(text) == "a" * 120 + ": late colon"


def test_merits_without_lead_in_is_untouched():
    text = "Under Matter of Chawathe: the standard is preponderance."
    assert strip_merits_lead_in(text) == text
