import logging
from typing import Optional

from llm_api_client import LLMApiClient

DEFAULT_REFINE_PROMPT = (
    "You are a helpful assistant. This is part {part_number} of {total_parts} of an interview transcription."
    "{context_clause} Be precise. Do not add anything or guess what the content might be. "
    "Correct any transcription errors and format it properly as an interview, "
    "ensuring there are no overlaps in content.\n\n{chunk}"
)
CONTEXT_CLAUSE = ' Given the context: "{context}", continue ensuring it flows naturally and there are no overlaps.'

def read_prompt_template(file_path: str) -> str:
    """Read a refinement prompt template.

    Args:
        file_path: Path to a UTF-8 template file.

    Returns:
        The template text.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the template is empty or lacks the {chunk} placeholder.
    """
    with open(file_path, 'r', encoding='utf-8') as file:
        template = file.read()
    validate_prompt_template(template, file_path)
    return template

def validate_prompt_template(template: str, source: str = "<template>"):
    if not template or not template.strip():
        raise ValueError(f"Empty prompt template at '{source}'")
    if "{chunk}" not in template:
        raise ValueError(f"Prompt template '{source}' has no {{chunk}} placeholder")
    # Literal braces must be doubled
    try:
        template.format(chunk="", context="", context_clause="", part_number=1, total_parts=1)
    except (KeyError, IndexError, ValueError) as e:
        raise ValueError(f"Prompt template '{source}' cannot be filled ({e!r}); "
                         "escape literal braces as {{ and }}") from e

class TranscriptRefiner:
    """Turns one batch of raw transcript text into cleaned, formatted text via the LLM."""

    def __init__(self, llm_api: LLMApiClient, prompt_template: str = DEFAULT_REFINE_PROMPT,
                 max_tokens: Optional[int] = None):
        validate_prompt_template(prompt_template)
        self.llm_api = llm_api
        self.prompt_template = prompt_template
        self.max_tokens = max_tokens

    def build_prompt(self, batch_text: str, context: str = "", part_number: int = 1, total_parts: int = 1) -> str:
        context_clause = CONTEXT_CLAUSE.format(context=context) if context else ""
        return self.prompt_template.format(
            chunk=batch_text,
            context=context,
            context_clause=context_clause,
            part_number=part_number,
            total_parts=total_parts,
        )

    def refine(self, batch_text: str, context: str = "", part_number: int = 1, total_parts: int = 1) -> Optional[str]:
        """Refine one batch. Returns None if the prompt cannot be built or the LLM call fails."""
        try:
            prompt = self.build_prompt(batch_text, context, part_number, total_parts)
        except (KeyError, IndexError, ValueError) as e:
            logging.error(f"Prompt template could not be filled for part {part_number}: {e}")
            return None
        logging.debug(f"Refining part {part_number}/{total_parts} ({len(batch_text)} chars, context: {bool(context)})")
        return self.llm_api.process_text(prompt, max_tokens=self.max_tokens)
