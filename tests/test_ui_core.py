import os
import shutil
import tempfile
import unittest
import logging

from rich.logging import RichHandler
from rich.table import Table

from ui.core import ScribeUI, LogPanel, LogPanelStream

class TestScribeUI(unittest.TestCase):

    def setUp(self):
        self.root_logger = logging.getLogger()
        self.saved_handlers = self.root_logger.handlers[:]
        self.saved_level = self.root_logger.level

    def tearDown(self):
        for handler in self.root_logger.handlers[:]:
            if handler not in self.saved_handlers:
                self.root_logger.removeHandler(handler)
                handler.close()
        for handler in self.saved_handlers:
            if handler not in self.root_logger.handlers:
                self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.saved_level)

    def test_singleton(self):
        self.assertIs(ScribeUI(), ScribeUI())

    def test_log_panel_keeps_recent_lines(self):
        panel = LogPanel(console=None, max_lines=2)
        for line in ("one\n", "   ", "two\n", "three\n"):
            panel.write(line)
        self.assertEqual(panel.__rich__().plain, "two\nthree")

    def test_setup_live_logging_routes_to_panel(self):
        ui = ScribeUI()
        panel = LogPanel(ui.get_console())
        ui.setup_live_logging(panel, False, "test_log")

        panel_handlers = [
            h for h in self.root_logger.handlers
            if isinstance(h, RichHandler) and isinstance(h.console.file, LogPanelStream)
        ]
        self.assertEqual(len(panel_handlers), 1)
        self.assertFalse(any(isinstance(h, logging.FileHandler) for h in self.root_logger.handlers
                             if h not in self.saved_handlers))
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)

        # Calling again does not stack handlers
        ui.setup_live_logging(panel, False, "test_log")
        panel_handlers = [
            h for h in self.root_logger.handlers
            if isinstance(h, RichHandler) and isinstance(h.console.file, LogPanelStream)
        ]
        self.assertEqual(len(panel_handlers), 1)

    def test_setup_live_logging_debug_file(self):
        ui = ScribeUI()
        panel = LogPanel(ui.get_console())
        log_dir = tempfile.mkdtemp()
        try:
            ui.setup_live_logging(panel, True, os.path.join(log_dir, "run"))
            file_handlers = [h for h in self.root_logger.handlers if isinstance(h, logging.FileHandler)
                             and h.baseFilename.startswith(log_dir)]
            self.assertEqual(len(file_handlers), 1)
            self.assertEqual(self.root_logger.level, logging.DEBUG)
            self.assertEqual(len(ui._panel_handlers(panel)), 1)
            for handler in file_handlers:
                self.root_logger.removeHandler(handler)
                handler.close()
        finally:
            shutil.rmtree(log_dir)

    def test_configure_basic_logging(self):
        ui = ScribeUI()
        handler = ui.configure_basic_logging(debug_mode=True)
        self.assertIn(handler, self.root_logger.handlers)
        self.assertEqual(self.root_logger.level, logging.DEBUG)

    def test_summary_table(self):
        table = ScribeUI().summary_table({"Batches written": 3, "Refinement failures": 0})
        self.assertIsInstance(table, Table)
        self.assertEqual(table.row_count, 2)

    def test_create_live_display(self):
        live, progress, log_panel = ScribeUI().create_live_display()
        task = progress.add_task("work", total=2, phase="Segments")
        progress.update(task, advance=1)
        self.assertEqual(progress.tasks[0].completed, 1)
        self.assertIsInstance(log_panel, LogPanel)

if __name__ == '__main__':
    unittest.main()
