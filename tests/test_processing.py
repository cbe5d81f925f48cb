import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock

from processing import determine_file_paths

class TestProcessing(unittest.TestCase):

    def setUp(self):
        self.work_dir = tempfile.mkdtemp()
        self.ui = MagicMock()

    def tearDown(self):
        shutil.rmtree(self.work_dir)

    def touch(self, *parts):
        path = os.path.join(self.work_dir, *parts)
        with open(path, "wb") as f:
            f.write(b"audio")
        return path

    def test_single_file_with_explicit_output(self):
        audio = self.touch("talk.mp3")
        output = os.path.join(self.work_dir, "talk.txt")
        self.assertEqual(determine_file_paths(audio, self.ui, output_path=output), [(audio, output)])

    def test_single_file_generated_output_name(self):
        audio = self.touch("talk.WAV")
        [(input_file, output_file)] = determine_file_paths(audio, self.ui)
        self.assertEqual(input_file, audio)
        self.assertTrue(os.path.basename(output_file).startswith("talk_transcript_"))
        self.assertTrue(output_file.endswith(".txt"))

    def test_single_file_wrong_extension(self):
        notes = self.touch("notes.txt")
        with self.assertRaises(SystemExit):
            determine_file_paths(notes, self.ui)

    def test_directory_input(self):
        second = self.touch("b_second.m4a")
        first = self.touch("a_first.mp3")
        self.touch("readme.md")
        output_folder = os.path.join(self.work_dir, "out")

        pairs = determine_file_paths(self.work_dir, self.ui, output_path=output_folder)

        self.assertEqual(pairs, [
            (first, os.path.join(output_folder, "a_first.txt")),
            (second, os.path.join(output_folder, "b_second.txt")),
        ])
        self.assertTrue(os.path.isdir(output_folder))

    def test_directory_recordings_sharing_a_stem(self):
        mp3 = self.touch("talk.mp3")
        wav = self.touch("talk.wav")
        other = self.touch("intro.flac")
        output_folder = os.path.join(self.work_dir, "out")

        pairs = determine_file_paths(self.work_dir, self.ui, output_path=output_folder)

        self.assertEqual(pairs, [
            (other, os.path.join(output_folder, "intro.txt")),
            (mp3, os.path.join(output_folder, "talk_mp3.txt")),
            (wav, os.path.join(output_folder, "talk_wav.txt")),
        ])
        self.assertEqual(len({output for _, output in pairs}), len(pairs))

    def test_directory_without_audio(self):
        self.touch("readme.md")
        with self.assertRaises(SystemExit):
            determine_file_paths(self.work_dir, self.ui, output_path=os.path.join(self.work_dir, "out"))

    def test_missing_path(self):
        with self.assertRaises(SystemExit):
            determine_file_paths(os.path.join(self.work_dir, "missing.mp3"), self.ui)

if __name__ == '__main__':
    unittest.main()
