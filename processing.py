import os
import sys
import logging
import datetime
from collections import Counter
from typing import Optional
from ui.core import ScribeUI

AUDIO_EXTENSIONS = (".mp3", ".wav", ".flac", ".m4a", ".m4b", ".ogg", ".opus", ".aac", ".wma", ".mp4", ".mkv", ".mov")

def determine_file_paths(input_path: str,
                         ui: ScribeUI,
                         output_path: Optional[str] = None,
                         allowed_extensions: tuple[str, ...] = AUDIO_EXTENSIONS,
                         output_suffix: str = "_transcript",
                         timestamp_format: str = "%Y%m%d_%H%M") -> list[tuple[str, str]]:
    """
    Pairs each input recording with the text file its refined transcript goes to.

    A single file maps to ``output_path`` when given, otherwise to
    ``<name><suffix>_<timestamp>.txt`` beside it. A directory maps every
    top-level audio file to ``<name>.txt`` inside ``output_path`` (or a new
    ``<dir><suffix>_<timestamp>`` folder).

    Args:
        input_path (str): Audio file or directory of audio files.
        ui (ScribeUI): UI instance used for console feedback.
        output_path (str | None): Explicit output file (single input) or folder (directory input).
        allowed_extensions (tuple[str, ...]): Lowercase audio extensions to accept.
        output_suffix (str): Suffix for generated output names.
        timestamp_format (str): strftime format for generated output names.

    Returns:
        list[tuple[str, str]]: (input_file, output_file) pairs in sorted order.

    Raises:
        SystemExit: If the input path is invalid, has the wrong extension, contains no
            audio, or the output folder cannot be created.
    """
    console = ui.get_console()
    timestamp = datetime.datetime.now().strftime(timestamp_format)
    allowed_extensions = tuple(ext.lower() for ext in allowed_extensions)
    files_to_process = []

    if os.path.isfile(input_path):
        if not input_path.lower().endswith(allowed_extensions):
            ext_str = ', '.join(allowed_extensions)
            logging.critical(f"Input file does not have an allowed extension ({ext_str}): {input_path}")
            console.print(f"[error]Input file must have one of the following extensions: {ext_str}[/]", style="error")
            sys.exit(1)
        if output_path:
            output_file = output_path
        else:
            base_name, _ = os.path.splitext(input_path)
            output_file = f"{base_name}{output_suffix}_{timestamp}.txt"
        files_to_process.append((input_path, output_file))
        logging.info(f"Processing single file: {input_path} -> {output_file}")

    elif os.path.isdir(input_path):
        output_folder = output_path or input_path.rstrip("/\\") + f"{output_suffix}_{timestamp}"
        try:
            os.makedirs(output_folder, exist_ok=True)
        except OSError as e:
            logging.critical(f"Could not create output directory {output_folder}: {e}", exc_info=True)
            console.print(f"[error]Could not create output directory {output_folder}: {e}[/]", style="error")
            sys.exit(1)
        console.print(f"[info]Processing files from:[/info] {input_path}")
        console.print(f"[info]Saving output to:[/info]    {output_folder}")

        audio_files = []
        for file in sorted(os.listdir(input_path)):
            input_file = os.path.join(input_path, file)
            if not file.lower().endswith(allowed_extensions):
                continue
            if not os.path.isfile(input_file):
                logging.debug(f"Skipping directory entry with audio extension: {input_file}")
                continue
            audio_files.append(file)

        # Recordings sharing a stem (talk.mp3, talk.wav) keep their extension in the output name
        stem_counts = Counter(os.path.splitext(file)[0] for file in audio_files)
        for file in audio_files:
            base_name, ext = os.path.splitext(file)
            if stem_counts[base_name] > 1:
                base_name = f"{base_name}_{ext.lstrip('.')}"
            files_to_process.append((os.path.join(input_path, file), os.path.join(output_folder, f"{base_name}.txt")))

        if not files_to_process:
            ext_str = ', '.join(allowed_extensions)
            logging.warning(f"No files with extensions ({ext_str}) found in the top-level of directory: {input_path}")
            console.print(f"[warning]No audio files found in {input_path}[/]", style="warning")
            sys.exit(1)

    else:
        logging.critical(f"Input path not found or invalid: {input_path}")
        console.print(f"[error]Input path not found or invalid: {input_path}[/]", style="error")
        sys.exit(1)

    logging.info(f"Found {len(files_to_process)} file(s) to process.")
    return files_to_process
