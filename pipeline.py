"""
Context-carrying batched transcription.

:class:`BatchCoordinator` walks the segments of one recording in order,
transcribes each one, groups the raw transcripts into fixed-size batches and,
at every batch boundary, refines the batch with the LLM, appends the result to
the sink and computes the context digest handed to the next batch.

Everything runs sequentially in the caller's thread. Collaborator failures
(transcription, refinement, context extraction) are logged and replaced with
empty text; sink errors propagate.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from audio_segments import Segment
from sink import TranscriptSink

BATCH_SEPARATOR = "\n\n"

@dataclass
class Batch:
    """Consecutive raw transcripts refined together, plus the digest that was live when it opened."""
    index: int
    context: str = ""
    segment_indices: List[int] = field(default_factory=list)
    transcripts: List[str] = field(default_factory=list)

    def add(self, segment: Segment, text: str):
        self.segment_indices.append(segment.index)
        self.transcripts.append(text)

    def __len__(self) -> int:
        return len(self.transcripts)

    @property
    def raw_material(self) -> str:
        """The batch's own transcript text, without the carried-over context."""
        return BATCH_SEPARATOR.join(t for t in self.transcripts if t)

    @property
    def text(self) -> str:
        """What the refiner sees: the carried-over context followed by the batch transcripts."""
        parts = [self.context] if self.context else []
        if self.raw_material:
            parts.append(self.raw_material)
        return BATCH_SEPARATOR.join(parts)

@dataclass
class PipelineState:
    """Per-run mutable state, owned by a single BatchCoordinator.run call."""
    context: str = ""
    batch: Optional[Batch] = None
    segments_processed: int = 0
    batches_flushed: int = 0

@dataclass
class RunReport:
    segments_total: int = 0
    segments_processed: int = 0
    batches_written: int = 0
    batch_sizes: List[int] = field(default_factory=list)
    transcription_failures: int = 0
    empty_transcripts: int = 0
    refinement_failures: int = 0
    context_failures: int = 0
    truncated: bool = False

class BatchCoordinator:
    """Drives transcription, batching, refinement and context propagation for one recording.

    Args:
        transcriber: Object with ``transcribe(audio_path, language=None, prompt=None)``
            returning text, "" for no speech, or None on failure.
        refiner: Object with ``refine(batch_text, context, part_number, total_parts)``
            returning text or None on failure.
        context_extractor: Object with ``extract(material, prior_context)`` returning
            the next digest, or None on failure.
        sink: The output writer.
        batch_size: Segments per batch.
        language: Language hint forwarded to the transcriber.
        transcribe_prompt: Domain prompt forwarded to the transcriber.
        segment_cleanup: Called with each segment once its text has been extracted.
    """

    def __init__(self, transcriber, refiner, context_extractor, sink: TranscriptSink, batch_size: int = 3,
                 language: Optional[str] = None, transcribe_prompt: Optional[str] = None,
                 segment_cleanup: Optional[Callable[[Segment], None]] = None):
        if batch_size < 1:
            raise ValueError("Batch size must be at least 1")
        self.transcriber = transcriber
        self.refiner = refiner
        self.context_extractor = context_extractor
        self.sink = sink
        self.batch_size = batch_size
        self.language = language
        self.transcribe_prompt = transcribe_prompt
        self.segment_cleanup = segment_cleanup

    def run(self, segments: Sequence[Segment], max_segments: Optional[int] = None, progress=None) -> RunReport:
        """Process segments in order and write one refined paragraph per batch.

        Args:
            segments: Ordered segments of one recording.
            max_segments: Stop after this many segments (dry runs). The partial
                batch collected so far is still refined and written.
            progress: Optional rich Progress instance.

        Returns:
            RunReport: Counters for the run.

        Raises:
            OSError: If the sink cannot be reset or appended to.
        """
        segments = list(segments)
        to_process = segments if max_segments is None else segments[:max_segments]
        report = RunReport(segments_total=len(segments), truncated=len(to_process) < len(segments))
        total_parts = math.ceil(len(to_process) / self.batch_size)
        state = PipelineState()

        self.sink.reset()
        if report.truncated:
            logging.info(f"Processing limited to {len(to_process)} of {len(segments)} segments.")

        task_id = None
        if progress is not None:
            task_id = progress.add_task("[green]Transcribing segments...", total=len(to_process), phase="Segments")

        for segment in to_process:
            if state.batch is None:
                state.batch = Batch(index=state.batches_flushed, context=state.context)

            logging.info(f"Transcribing {segment.segment_id} ({state.segments_processed + 1}/{len(to_process)})...")
            text = self._transcribe(segment, report)
            state.batch.add(segment, text)
            state.segments_processed += 1
            report.segments_processed += 1
            if self.segment_cleanup is not None:
                self.segment_cleanup(segment)
            if task_id is not None:
                progress.update(task_id, advance=1)

            if len(state.batch) >= self.batch_size:
                self._flush(state, report, total_parts)

        if state.batch is not None and len(state.batch) > 0:
            self._flush(state, report, total_parts)

        if task_id is not None:
            progress.update(task_id, description="[green]Segments complete")
            progress.stop_task(task_id)

        logging.info(f"Wrote {report.batches_written} batch(es) from {report.segments_processed} segment(s) to {self.sink.output_path}")
        return report

    def _transcribe(self, segment: Segment, report: RunReport) -> str:
        try:
            text = self.transcriber.transcribe(segment.path, language=self.language, prompt=self.transcribe_prompt)
        except Exception as e:
            logging.error(f"Transcriber raised for {segment.segment_id}: {e}", exc_info=True)
            text = None
        if text is None:
            logging.warning(f"Transcription failed for {segment.segment_id}; continuing with empty text.")
            report.transcription_failures += 1
            return ""
        if not text.strip():
            logging.info(f"{segment.segment_id} produced no text.")
            report.empty_transcripts += 1
            return ""
        return text.strip()

    def _flush(self, state: PipelineState, report: RunReport, total_parts: int):
        batch = state.batch
        part_number = batch.index + 1
        refined = self._refine(batch, part_number, total_parts, report)

        self.sink.append(refined)
        report.batches_written += 1
        report.batch_sizes.append(len(batch))
        logging.info(f"Batch {part_number}/{total_parts} written ({len(batch)} segment(s), segments {batch.segment_indices[0]}-{batch.segment_indices[-1]}).")

        state.context = self._next_context(batch, report)
        state.batches_flushed += 1
        state.batch = None

    def _refine(self, batch: Batch, part_number: int, total_parts: int, report: RunReport) -> str:
        if not batch.raw_material:
            logging.warning(f"Batch {part_number}/{total_parts} has no text to refine; writing an empty paragraph.")
            return ""
        try:
            refined = self.refiner.refine(batch.text, batch.context, part_number=part_number, total_parts=total_parts)
        except Exception as e:
            logging.error(f"Refiner raised for batch {part_number}: {e}", exc_info=True)
            refined = None
        if refined is None:
            logging.warning(f"Refinement failed for batch {part_number}/{total_parts}; writing an empty paragraph.")
            report.refinement_failures += 1
            return ""
        return refined

    def _next_context(self, batch: Batch, report: RunReport) -> str:
        # Digest comes from this batch's raw transcripts only, never from the refined output
        try:
            digest = self.context_extractor.extract(batch.raw_material, batch.context)
        except Exception as e:
            logging.error(f"Context extraction raised after batch {batch.index + 1}: {e}", exc_info=True)
            digest = None
        if digest is None:
            report.context_failures += 1
            return ""
        logging.debug(f"Context for batch {batch.index + 2}: {digest[:100]}")
        return digest.strip()
