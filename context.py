"""
Context digests carried from one refinement batch to the next.

Two interchangeable strategies are provided, selected by ``CONTEXT_STRATEGY``:

* ``excerpt`` - :class:`TrailingContextExtractor` keeps the last N sentences
  of the batch's raw transcript. Deterministic, no external call.
* ``summary`` - :class:`SummaryContextExtractor` asks the LLM for a short
  summary of the batch's raw transcript.

Both read only the material of the batch that just finished, so the digest
handed to batch n+1 never depends on anything later than batch n.
"""

import re
import logging
from typing import List, Optional

from llm_api_client import LLMApiClient

# A sentence is a run of non-terminal characters closed by one or more of . ! ?
SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]+")

SUMMARY_PROMPT = (
    "Summarize the following interview segment, focusing on key points and discarding "
    "any unnecessary details. Ensure the summary is concise and captures the essence "
    "of the discussion:\n\n{text}"
)
SUMMARY_BACKGROUND = "Earlier in the conversation: {context}\n\n"

def split_sentences(text: str) -> List[str]:
    """Split text on terminal punctuation. Trailing text without punctuation is dropped."""
    return [s.strip() for s in SENTENCE_PATTERN.findall(text or "") if s.strip()]

class TrailingContextExtractor:
    """Digest = the last `sentences` sentences of the batch material."""

    def __init__(self, sentences: int = 1):
        if sentences < 1:
            raise ValueError("At least one trailing sentence is required")
        self.sentences = sentences

    def extract(self, material: str, prior_context: str = "") -> str:
        return " ".join(split_sentences(material)[-self.sentences:])

class SummaryContextExtractor:
    """Digest = an LLM summary of the batch material, bounded by max_tokens.

    Returns None when the summary call fails so the caller can reset the digest.
    """

    def __init__(self, llm_api: LLMApiClient, max_tokens: int = 150,
                 model: Optional[str] = None, temperature: Optional[float] = 0.7):
        self.llm_api = llm_api
        self.max_tokens = max_tokens
        self.model = model
        self.temperature = temperature

    def build_prompt(self, material: str, prior_context: str = "") -> str:
        background = SUMMARY_BACKGROUND.format(context=prior_context) if prior_context else ""
        return background + SUMMARY_PROMPT.format(text=material)

    def extract(self, material: str, prior_context: str = "") -> Optional[str]:
        if not material or not material.strip():
            return ""
        summary = self.llm_api.process_text(
            self.build_prompt(material, prior_context),
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if summary is None:
            logging.warning("Context summary failed; the next batch starts without context.")
        return summary

def build_context_extractor(strategy: str, llm_api: Optional[LLMApiClient] = None, sentences: int = 1,
                            max_tokens: int = 150, model: Optional[str] = None, temperature: Optional[float] = 0.7):
    """Create the extractor for a CONTEXT_STRATEGY value."""
    if strategy == 'excerpt':
        return TrailingContextExtractor(sentences)
    if strategy == 'summary':
        if llm_api is None:
            raise ValueError("The summary context strategy needs an LLM client")
        return SummaryContextExtractor(llm_api, max_tokens=max_tokens, model=model, temperature=temperature)
    raise ValueError(f"Unknown context strategy: {strategy}")
