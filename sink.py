import os
import logging

PARAGRAPH_SEPARATOR = "\n\n"

class TranscriptSink:
    """Append-only UTF-8 text file receiving one paragraph per refined batch.

    Write errors propagate to the caller and end the run.
    """

    def __init__(self, output_path: str):
        self.output_path = output_path

    def reset(self):
        """Truncate any previous output. Called once at the start of a run."""
        output_dir = os.path.dirname(self.output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)
        with open(self.output_path, 'w', encoding='utf-8'):
            pass
        logging.info(f"Cleared old content in {self.output_path}.")

    def append(self, text: str):
        """Append text plus a paragraph separator in a single write."""
        with open(self.output_path, 'a', encoding='utf-8') as out_file:
            out_file.write(text + PARAGRAPH_SEPARATOR)
            out_file.flush()
        logging.debug(f"Appended {len(text)} chars to {self.output_path}")
