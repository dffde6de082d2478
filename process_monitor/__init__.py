"""Guideline compliance analysis backed by a zero-shot classifier and a result cache."""
