"""
Unit tests for repo_lens.kb.answer
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest


def _hit(content, path, score=6.0, metadata=None, last_updated=None):
    from repo_lens.kb.entry import KnowledgeEntry
    from repo_lens.kb.searcher import SearchHit

    entry = KnowledgeEntry(id=f"{path}-{score}", type="comment", content=content,
                           file_path=path, metadata=metadata, last_updated=last_updated)
    return SearchHit(entry=entry, score=score)


def _hits():
    from repo_lens.kb.entry import FunctionMeta

    return [
        _hit("Charges the member card on renewal", "src/billing/payments.js", 6.0,
             last_updated="2024-03-02T08:00:00Z"),
        _hit("function renewSubscription(memberId) { ... }", "src/billing/payments.js", 4.0,
             metadata=FunctionMeta("renewSubscription", "memberId")),
        _hit("Tier changes are prorated", "src/tiers.js", 2.0,
             last_updated="2024-06-10T12:30:00Z"),
        _hit("Unrelated fourth hit", "src/misc.js", 1.0),
    ]


class TestTemplateAnswer:
    def test_template_text_and_references(self):
        from repo_lens.kb.answer import AnswerGenerator

        answer = AnswerGenerator(lambda q: _hits()).answer("How do renewals work?")
        assert answer.source == "template"
        assert answer.used_mock_data is False
        assert answer.text.startswith("## How do renewals work?")
        assert "`src/billing/payments.js`" in answer.text
        assert "Functions involved: renewSubscription." in answer.text
        assert "current as of 2024-06-10" in answer.text
        assert [r.file_path for r in answer.references] == [
            "src/billing/payments.js", "src/billing/payments.js", "src/tiers.js"]
        assert answer.references[0].last_updated == "2024-03-02T08:00:00Z"

    def test_confidence_grows_with_evidence(self):
        from repo_lens.kb.answer import AnswerGenerator

        many = AnswerGenerator(lambda q: _hits()).answer("q")
        one = AnswerGenerator(lambda q: _hits()[:1]).answer("q")
        weak = AnswerGenerator(lambda q: [_hit("x", "a.js", score=0.5)]).answer("q")
        # 4 hits, top score above the strong threshold
        assert many.confidence == pytest.approx(0.9)
        assert one.confidence > weak.confidence
        assert many.confidence > one.confidence

    def test_no_hits(self):
        from repo_lens.kb.answer import AnswerGenerator

        assert AnswerGenerator(lambda q: []).answer("anything") is None

    def test_long_snippets_truncated(self):
        from repo_lens.kb.answer import SNIPPET_CHARS, AnswerGenerator

        answer = AnswerGenerator(lambda q: [_hit("word " * 100, "a.js")]).answer("q")
        assert len(answer.references[0].snippet) == SNIPPET_CHARS + 3


class TestLLMAnswer:
    def test_llm_answer(self):
        from repo_lens.kb.answer import AnswerGenerator

        llm = MagicMock()
        llm.generate_response.return_value = "Renewals charge the card.\n"
        answer = AnswerGenerator(lambda q: _hits(), llm).answer("How do renewals work?")
        assert answer.source == "llm"
        assert answer.text == "Renewals charge the card."
        assert answer.confidence == pytest.approx(0.9)
        prompt = llm.generate_response.call_args[0][0]
        assert "Question: How do renewals work?" in prompt
        assert "File: src/tiers.js" in prompt

    def test_llm_failure_falls_back_to_template(self):
        from repo_lens.kb.answer import AnswerGenerator
        from repo_lens.llm import LLMError

        llm = MagicMock()
        llm.generate_response.side_effect = LLMError("quota exceeded")
        answer = AnswerGenerator(lambda q: _hits(), llm).answer("q")
        assert answer.source == "template"

    def test_mock_data_caps_confidence(self):
        from repo_lens.kb.answer import MOCK_CONFIDENCE_CAP, AnswerGenerator

        llm = MagicMock()
        llm.generate_response.return_value = "Synthetic answer"
        answer = AnswerGenerator(lambda q: _hits(), llm, lambda: True).answer("q")
        assert answer.used_mock_data is True
        assert answer.confidence == MOCK_CONFIDENCE_CAP


class TestBuildPrompt:
    def test_context_limited(self):
        from repo_lens.kb.answer import MAX_CONTEXT_HITS, build_prompt

        hits = [_hit(f"entry {i}", f"src/{i}.js") for i in range(MAX_CONTEXT_HITS + 4)]
        prompt = build_prompt("q", hits)
        assert prompt.count("File: ") == MAX_CONTEXT_HITS
