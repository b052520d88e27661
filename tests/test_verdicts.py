"""Tests for quorum.consensus.verdicts — tagged verdict parsing."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from quorum.consensus.verdicts import MAIN_GRAMMAR, TRIAGE_GRAMMAR, parse_verdict
from quorum.schemas.verdict import (
    Approve,
    Changes,
    Close,
    Draft,
    Human,
    MainVerdict,
    Ready,
    TriageVerdict,
)


class TestMainGrammar:
    @pytest.mark.parametrize(
        ("text", "variant", "message"),
        [
            ("APPROVE: Clean. Ship it.", Approve, "Clean. Ship it."),
            ("CHANGES: add tests", Changes, "add tests"),
            ("HUMAN: product call needed", Human, "product call needed"),
        ],
    )
    def test_tagged_replies(self, text, variant, message):
        verdict = parse_verdict(text, MAIN_GRAMMAR)
        assert isinstance(verdict, variant)
        assert verdict.message == message

    def test_leading_whitespace_ignored(self):
        verdict = parse_verdict("\n   APPROVE:   looks good  \n", MAIN_GRAMMAR)
        assert isinstance(verdict, Approve)
        assert verdict.message == "looks good"

    def test_empty_body(self):
        verdict = parse_verdict("CHANGES:", MAIN_GRAMMAR)
        assert isinstance(verdict, Changes)
        assert verdict.message == ""

    def test_multiline_body_kept(self):
        verdict = parse_verdict("CHANGES: fix the handler.\nAlso add a test.", MAIN_GRAMMAR)
        assert verdict.message == "fix the handler.\nAlso add a test."

    def test_tag_is_case_sensitive(self):
        verdict = parse_verdict("approve: fine", MAIN_GRAMMAR)
        assert isinstance(verdict, Human)
        assert verdict.message == "approve: fine"

    def test_tag_requires_colon(self):
        assert isinstance(parse_verdict("APPROVE looks good", MAIN_GRAMMAR), Human)

    def test_tag_not_at_start_falls_back(self):
        verdict = parse_verdict("I think APPROVE: yes", MAIN_GRAMMAR)
        assert isinstance(verdict, Human)
        assert verdict.message == "I think APPROVE: yes"

    def test_triage_tag_not_valid_in_main_flow(self):
        assert isinstance(parse_verdict("READY: go", MAIN_GRAMMAR), Human)

    def test_empty_input_falls_back(self):
        verdict = parse_verdict("   ", MAIN_GRAMMAR)
        assert isinstance(verdict, Human)
        assert verdict.message == ""

    def test_ai_failure_fallback_text(self):
        verdict = parse_verdict("HUMAN: AI evaluation failed — needs manual review", MAIN_GRAMMAR)
        assert isinstance(verdict, Human)
        assert verdict.message == "AI evaluation failed — needs manual review"


class TestTriageGrammar:
    @pytest.mark.parametrize(
        ("text", "variant"),
        [("READY: valid", Ready), ("CLOSE: duplicate", Close), ("DRAFT: vague", Draft)],
    )
    def test_tagged_replies(self, text, variant):
        assert isinstance(parse_verdict(text, TRIAGE_GRAMMAR), variant)

    def test_unrecognized_falls_back_to_draft(self):
        verdict = parse_verdict("APPROVE: ship it", TRIAGE_GRAMMAR)
        assert isinstance(verdict, Draft)
        assert verdict.message == "APPROVE: ship it"


class TestGrammarShape:
    def test_tags(self):
        assert MAIN_GRAMMAR.tags == ("APPROVE", "CHANGES", "HUMAN")
        assert TRIAGE_GRAMMAR.tags == ("READY", "CLOSE", "DRAFT")

    def test_variant_for_unknown_tag_is_fallback(self):
        assert MAIN_GRAMMAR.variant_for("NOPE") is Human
        assert TRIAGE_GRAMMAR.variant_for("NOPE") is Draft


class TestVerdictSchemas:
    def test_verdicts_are_frozen(self):
        verdict = Approve(message="ok")
        with pytest.raises(ValidationError):
            verdict.message = "changed"

    def test_main_union_discriminates_on_tag(self):
        adapter = TypeAdapter(MainVerdict)
        assert isinstance(adapter.validate_python({"tag": "CHANGES", "message": "x"}), Changes)
        with pytest.raises(ValidationError):
            adapter.validate_python({"tag": "READY", "message": "x"})

    def test_triage_union_discriminates_on_tag(self):
        adapter = TypeAdapter(TriageVerdict)
        assert isinstance(adapter.validate_python({"tag": "CLOSE"}), Close)
