#!/usr/bin/env python3
# Audio to refined text transcript, with context carried across refinement batches

import os
import sys
import logging
import argparse
import datetime
from dotenv import load_dotenv
from ui.core import ScribeUI
from config import TranscriptionConfig, AudioConfig, CONTEXT_STRATEGIES, TRANSCRIBE_BACKENDS
from llm_api_client import LLMApiClient
from stt_api_client import SpeechApiClient
from refiner import TranscriptRefiner, DEFAULT_REFINE_PROMPT, read_prompt_template
from context import build_context_extractor
from audio_segments import prepare_segments, discard_segment, SegmentationError
from pipeline import BatchCoordinator, RunReport
from sink import TranscriptSink
from processing import determine_file_paths

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_ABORTED = 130

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Transcribe a long recording segment by segment and refine it in context-carrying batches."
    )
    parser.add_argument("input_path", help="Audio file, or a directory of audio files.")
    parser.add_argument("-o", "--output", help="Output .txt file (single input) or folder (directory input).")
    parser.add_argument("--segment-duration", type=float, help="Segment length in seconds (SEGMENT_DURATION_S).")
    parser.add_argument("--batch-size", type=int, help="Segments refined together (BATCH_SIZE).")
    parser.add_argument("--context", choices=CONTEXT_STRATEGIES, help="Context carried between batches (CONTEXT_STRATEGY).")
    parser.add_argument("--context-sentences", type=int, help="Trailing sentences kept by the excerpt strategy (CONTEXT_SENTENCES).")
    parser.add_argument("--max-segments", type=int, help="Stop after this many segments, for cheap dry runs (MAX_SEGMENTS).")
    parser.add_argument("--language", help="Language hint for the transcriber, e.g. 'sv' (TRANSCRIBE_LANGUAGE).")
    parser.add_argument("--transcribe-prompt", help="Domain prompt for the transcriber (TRANSCRIBE_PROMPT).")
    parser.add_argument("--prompt-file", help="Refinement prompt template with a {chunk} placeholder (REFINE_PROMPT_FILE).")
    parser.add_argument("--backend", choices=TRANSCRIBE_BACKENDS, help="Transcriber backend (TRANSCRIBE_BACKEND).")
    parser.add_argument("--segments-dir", help="Working folder for segment files (SEGMENTS_DIR).")
    parser.add_argument("--keep-segments", action="store_true", help="Keep segment files after transcription.")
    return parser

def apply_cli_overrides(args: argparse.Namespace, config: TranscriptionConfig, audio_config: AudioConfig):
    """Let command-line flags win over environment settings, then re-validate both configs."""
    overrides = {
        "BATCH_SIZE": args.batch_size,
        "CONTEXT_STRATEGY": args.context,
        "CONTEXT_SENTENCES": args.context_sentences,
        "MAX_SEGMENTS": args.max_segments,
        "TRANSCRIBE_LANGUAGE": args.language,
        "TRANSCRIBE_PROMPT": args.transcribe_prompt,
        "REFINE_PROMPT_FILE": args.prompt_file,
        "TRANSCRIBE_BACKEND": args.backend,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    if args.segment_duration is not None:
        audio_config.SEGMENT_DURATION_S = args.segment_duration
    if args.segments_dir:
        audio_config.SEGMENTS_DIR = args.segments_dir
    if args.keep_segments:
        audio_config.KEEP_SEGMENTS = True
    config._validate()
    audio_config._validate()

def create_transcriber(config: TranscriptionConfig, audio_config: AudioConfig):
    """Instantiate the configured transcriber backend."""
    if config.TRANSCRIBE_BACKEND == 'local':
        # Imported lazily: pulls in torch and transformers
        from local_asr import LocalWhisperTranscriber
        return LocalWhisperTranscriber(config, target_sample_rate=audio_config.TARGET_SAMPLE_RATE)
    return SpeechApiClient(config)

def process_audio_file(input_file: str, output_file: str, transcriber, refiner: TranscriptRefiner,
                       context_extractor, config: TranscriptionConfig, audio_config: AudioConfig,
                       progress=None) -> RunReport:
    """
    Segment one recording and run the batch pipeline over it.

    Raises:
        SegmentationError: If the audio cannot be normalized or split.
        OSError: If the output file cannot be written.
    """
    logging.info(f"Processing {os.path.basename(input_file)} -> {output_file}")
    # Named after the output file, which is unique per recording within a run
    base_name = os.path.splitext(os.path.basename(output_file))[0]
    segments_folder = os.path.join(audio_config.SEGMENTS_DIR, base_name)
    segments = prepare_segments(input_file, audio_config, output_folder=segments_folder)

    coordinator = BatchCoordinator(
        transcriber=transcriber,
        refiner=refiner,
        context_extractor=context_extractor,
        sink=TranscriptSink(output_file),
        batch_size=config.BATCH_SIZE,
        language=config.TRANSCRIBE_LANGUAGE,
        transcribe_prompt=config.TRANSCRIBE_PROMPT,
        segment_cleanup=None if audio_config.KEEP_SEGMENTS else discard_segment,
    )
    report = coordinator.run(segments, max_segments=config.MAX_SEGMENTS, progress=progress)
    if not audio_config.KEEP_SEGMENTS:
        for segment in segments[report.segments_processed:]:
            discard_segment(segment)
    return report

def run(argv=None) -> int:
    """Entry point. Returns the process exit status.

    Setup problems (paths, configuration, LLM client, segmentation) and output
    write failures give exit status 1; per-segment and per-batch failures are
    only logged and counted.
    """
    load_dotenv()
    ui = ScribeUI()
    console = ui.get_console()
    args = build_arg_parser().parse_args(argv)

    try:
        config = TranscriptionConfig()
        audio_config = AudioConfig()
        apply_cli_overrides(args, config, audio_config)
    except ValueError as e:
        console.print(f"[error]Configuration error: {e}[/]", style="error")
        return EXIT_FAILURE

    handler = ui.configure_basic_logging(config.DEBUG)
    try:
        prompt_template = read_prompt_template(config.REFINE_PROMPT_FILE) if config.REFINE_PROMPT_FILE else DEFAULT_REFINE_PROMPT
    except (OSError, ValueError) as e:
        logging.critical(f"Prompt template error: {e}")
        return EXIT_FAILURE

    try:
        files_to_process = determine_file_paths(args.input_path, ui, output_path=args.output)
    except SystemExit:
        return EXIT_FAILURE

    logging.info(f"Transcriber backend: {config.TRANSCRIBE_BACKEND}")
    logging.info(f"Segment duration: {audio_config.SEGMENT_DURATION_S:g}s, batch size: {config.BATCH_SIZE}")
    logging.info(f"Context strategy: {config.CONTEXT_STRATEGY}"
                 + (f" ({config.CONTEXT_SENTENCES} sentence(s))" if config.CONTEXT_STRATEGY == 'excerpt' else ""))
    logging.info(f"LLM Model: {config.LLM_MODEL_NAME} at {config.LLM_API_BASE_URL}")
    if config.MAX_SEGMENTS:
        logging.info(f"Dry run: at most {config.MAX_SEGMENTS} segment(s) per file")

    llm_api = LLMApiClient(config=config)
    if not llm_api.is_available():
        console.print("[error]LLM Client failed to initialize. Check config and logs.[/]", style="error")
        logging.critical("LLM Client initialization failed. Exiting.")
        return EXIT_FAILURE
    if not llm_api.warm_up():
        console.print("[error]LLM warm-up failed. Check connection/authentication in logs.[/]", style="error")
        logging.critical("LLM warm-up failed. Exiting.")
        return EXIT_FAILURE
    console.print("[success]LLM service responded.[/]", style="success")

    transcriber = create_transcriber(config, audio_config)
    refiner = TranscriptRefiner(llm_api, prompt_template)
    context_extractor = build_context_extractor(
        config.CONTEXT_STRATEGY,
        llm_api=llm_api,
        sentences=config.CONTEXT_SENTENCES,
        max_tokens=config.SUMMARY_MAX_TOKENS,
        model=config.SUMMARY_MODEL_NAME,
        temperature=config.SUMMARY_TEMPERATURE,
    )

    logging.getLogger().removeHandler(handler)
    live, progress, log_panel = ui.create_live_display()
    ui.setup_live_logging(log_panel, config.DEBUG, "ctxscribe")

    reports = []
    setup_failures = 0
    exit_code = EXIT_OK
    try:
        with live:
            files_task = progress.add_task("[cyan]Recordings", total=len(files_to_process), phase="Overall")
            for input_file, output_file in files_to_process:
                progress.update(files_task, description=f"[cyan]{os.path.basename(input_file)}")
                try:
                    report = process_audio_file(input_file, output_file, transcriber, refiner,
                                                context_extractor, config, audio_config, progress)
                    reports.append((input_file, output_file, report))
                except SegmentationError as e:
                    logging.critical(f"Could not segment {input_file}: {e}")
                    setup_failures += 1
                    exit_code = EXIT_FAILURE
                except OSError as e:
                    logging.critical(f"Writing {output_file} failed, aborting: {e}", exc_info=True)
                    exit_code = EXIT_FAILURE
                    break
                progress.update(files_task, advance=1)
            progress.update(files_task, description="[bold cyan]Done")
            progress.stop_task(files_task)
    except KeyboardInterrupt:
        logging.warning("Run aborted by user. Batches already written are complete.")
        exit_code = EXIT_ABORTED
    finally:
        release = getattr(transcriber, "release", None)
        if release is not None:
            release()

    console.print(ui.create_panel(
        ui.summary_table(summarize_reports(reports, setup_failures)),
        title="[bold]Processing Complete[/bold]",
        subtitle=f"Completed at {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        border_style="green" if exit_code == EXIT_OK else "red",
    ))
    for _, output_file, _ in reports:
        console.print(f"[info]Transcript saved to[/info] {output_file}")
    return exit_code

def summarize_reports(reports, setup_failures: int = 0) -> dict:
    """Aggregate per-file RunReports into rows for the summary table."""
    def total(attr):
        return sum(getattr(report, attr) for _, _, report in reports)

    summary = {
        "Recordings processed": len(reports),
        "Segments transcribed": total("segments_processed"),
        "Batches written": total("batches_written"),
        "Transcription failures": total("transcription_failures"),
        "Empty segments": total("empty_transcripts"),
        "Refinement failures": total("refinement_failures"),
        "Context failures": total("context_failures"),
    }
    if setup_failures:
        summary["Recordings failed to segment"] = setup_failures
    if any(report.truncated for _, _, report in reports):
        summary["Truncated (max segments)"] = "yes"
    return summary

def main():
    sys.exit(run())

if __name__ == "__main__":
    main()
