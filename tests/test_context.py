import pytest
from unittest.mock import MagicMock

from context import (
    TrailingContextExtractor,
    SummaryContextExtractor,
    build_context_extractor,
    split_sentences,
)

def test_split_sentences():
    assert split_sentences("One. Two! Three? trailing words") == ["One.", "Two!", "Three?"]
    assert split_sentences("Wait... what?!") == ["Wait...", "what?!"]
    assert split_sentences("") == []

def test_trailing_excerpt_last_sentence():
    extractor = TrailingContextExtractor(sentences=1)
    assert extractor.extract("Hello world. How are you?") == "How are you?"

def test_trailing_excerpt_without_terminal_punctuation_is_empty():
    extractor = TrailingContextExtractor(sentences=1)
    assert extractor.extract("no punctuation at all here") == ""
    assert extractor.extract("") == ""

def test_trailing_excerpt_several_sentences():
    extractor = TrailingContextExtractor(sentences=3)
    material = "First. Second. Third. Fourth.\n\nFifth!"
    assert extractor.extract(material) == "Third. Fourth. Fifth!"

def test_trailing_excerpt_fewer_sentences_than_requested():
    extractor = TrailingContextExtractor(sentences=5)
    assert extractor.extract("Only one.") == "Only one."

def test_trailing_excerpt_ignores_prior_context():
    extractor = TrailingContextExtractor(sentences=1)
    assert extractor.extract("Fresh material.", prior_context="Old context.") == "Fresh material."

def test_trailing_excerpt_requires_positive_count():
    with pytest.raises(ValueError):
        TrailingContextExtractor(sentences=0)

def test_summary_extractor_calls_llm():
    llm_api = MagicMock()
    llm_api.process_text.return_value = "They discussed the harvest."
    extractor = SummaryContextExtractor(llm_api, max_tokens=150, model="small", temperature=0.7)

    assert extractor.extract("We talked about the harvest. It was late.") == "They discussed the harvest."
    prompt = llm_api.process_text.call_args.args[0]
    assert prompt.startswith("Summarize the following interview segment")
    assert prompt.endswith("We talked about the harvest. It was late.")
    assert llm_api.process_text.call_args.kwargs == {"model": "small", "max_tokens": 150, "temperature": 0.7}

def test_summary_extractor_includes_prior_context():
    llm_api = MagicMock()
    llm_api.process_text.return_value = "Summary."
    extractor = SummaryContextExtractor(llm_api)

    extractor.extract("New material.", prior_context="They met in Umeå.")
    prompt = llm_api.process_text.call_args.args[0]
    assert prompt.startswith("Earlier in the conversation: They met in Umeå.")

def test_summary_extractor_failure_returns_none():
    llm_api = MagicMock()
    llm_api.process_text.return_value = None
    extractor = SummaryContextExtractor(llm_api)
    assert extractor.extract("Something was said.") is None

def test_summary_extractor_empty_material_skips_call():
    llm_api = MagicMock()
    extractor = SummaryContextExtractor(llm_api)
    assert extractor.extract("   ") == ""
    llm_api.process_text.assert_not_called()

def test_build_context_extractor():
    assert isinstance(build_context_extractor('excerpt', sentences=2), TrailingContextExtractor)
    assert build_context_extractor('excerpt', sentences=2).sentences == 2
    summary = build_context_extractor('summary', llm_api=MagicMock(), max_tokens=80)
    assert isinstance(summary, SummaryContextExtractor)
    assert summary.max_tokens == 80

def test_build_context_extractor_errors():
    with pytest.raises(ValueError):
        build_context_extractor('summary')
    with pytest.raises(ValueError):
        build_context_extractor('keywords')
