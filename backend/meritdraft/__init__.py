"""
MeritDraft backend: O-1A/EB-1A support letter drafting.
"""
