"""
Unit tests for batch processing functionality.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

import numpy as np
from PIL import Image

from layout_outline.batch_processor import BatchProcessor
from layout_outline.config import PipelineConfig
from layout_outline.detection_decoder import LAYOUT_CLASS_LABELS
from layout_outline.logging_config import LayoutModelError, RasterizationError


def read_title_regions(image, box):
    """OCR stand-in: title regions read as a heading, everything else is blank."""
    return "Executive Summary" if box.label == "title" else ""


class TestBatchProcessor(unittest.TestCase):
    """Test cases for BatchProcessor functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.input_dir = self.temp_dir / "input"
        self.output_dir = self.temp_dir / "output"
        self.input_dir.mkdir()

        self.renderer = Mock()
        self.renderer.render_pages.return_value = [Image.new("RGB", (1000, 1000), (255, 255, 255))]
        self.renderer.get_document_metadata.return_value = {"title": "Annual Report", "page_count": 1}
        self.renderer.extract_document_geometry.return_value = [[]]

        self.ocr = Mock()
        self.ocr.read_region.side_effect = read_title_regions

        self.processor = BatchProcessor(PipelineConfig(), renderer=self.renderer, ocr=self.ocr)

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def create_pdf(self, name):
        path = self.input_dir / name
        path.write_bytes(b"%PDF-1.4\n")
        return path

    def test_process_single_pdf_writes_outline(self):
        """Test that a processed document produces the expected JSON."""
        pdf_path = self.create_pdf("report.pdf")
        output_path = self.output_dir / "report.json"

        self.assertTrue(self.processor.process_single_pdf(pdf_path, output_path))

        data = json.loads(output_path.read_text(encoding="utf-8"))
        self.assertEqual(data, {
            "title": "Annual Report",
            "outline": [{"level": "H1", "text": "Executive Summary", "page": 1}]
        })
        self.assertEqual(self.processor.stats['successful'], 1)
        self.assertEqual(self.processor.page_stats.fallback_pages, 1)
        self.assertEqual(self.processor.get_processing_stats()["headings_by_level"],
                         {"H1": 1, "H2": 0, "H3": 0, "H4": 0})
        self.renderer.render_pages.assert_called_once_with(pdf_path, 100)

    def test_title_falls_back_to_filename(self):
        """Test filename titles when metadata has none."""
        self.renderer.get_document_metadata.return_value = {}
        pdf_path = self.create_pdf("project_plan.pdf")

        outline = self.processor.extract_outline(pdf_path)

        self.assertEqual(outline.title, "Project Plan")

    def test_document_without_pages(self):
        """Test that a document with no rendered pages has an empty outline."""
        self.renderer.render_pages.return_value = []

        outline = self.processor.extract_outline(self.create_pdf("empty.pdf"))

        self.assertEqual(outline.title, "Annual Report")
        self.assertEqual(outline.headings, [])
        self.ocr.read_region.assert_not_called()

    def test_model_output_is_used(self):
        """Test that detections from the layout model drive OCR."""
        tensor = np.zeros((4 + len(LAYOUT_CLASS_LABELS), 1), dtype=np.float32)
        tensor[0:4, 0] = (250, 100, 400, 50)
        tensor[4 + 10, 0] = 0.9
        runner = Mock()
        runner.available = True
        runner.class_labels = LAYOUT_CLASS_LABELS
        runner.run.return_value = (tensor, 2.0, 2.0)

        processor = BatchProcessor(PipelineConfig(), model_runner=runner, renderer=self.renderer, ocr=self.ocr)
        outline = processor.extract_outline(self.create_pdf("model.pdf"))

        self.assertEqual([h.text for h in outline.headings], ["Executive Summary"])
        self.assertEqual(outline.headings[0].bbox.as_tuple(), (100.0, 150.0, 900.0, 250.0))
        self.assertEqual(processor.page_stats.fallback_pages, 0)

    def test_model_failure_uses_fallback(self):
        """Test that a LayoutModelError degrades to the placeholder layout."""
        runner = Mock()
        runner.available = True
        runner.class_labels = LAYOUT_CLASS_LABELS
        runner.run.side_effect = LayoutModelError("inference failed")

        processor = BatchProcessor(PipelineConfig(), model_runner=runner, renderer=self.renderer, ocr=self.ocr)
        outline = processor.extract_outline(self.create_pdf("broken_model.pdf"))

        self.assertEqual([h.text for h in outline.headings], ["Executive Summary"])
        self.assertEqual(processor.page_stats.fallback_pages, 1)

    def test_unavailable_model_is_not_run(self):
        """Test that an unavailable runner is skipped."""
        runner = Mock()
        runner.available = False
        runner.class_labels = LAYOUT_CLASS_LABELS

        processor = BatchProcessor(PipelineConfig(), model_runner=runner, renderer=self.renderer, ocr=self.ocr)
        processor.extract_outline(self.create_pdf("no_model.pdf"))

        runner.run.assert_not_called()

    def test_process_directory_isolates_errors(self):
        """Test that one failing PDF doesn't stop the batch."""
        self.create_pdf("a_good.pdf")
        bad = self.create_pdf("b_bad.pdf")
        self.create_pdf("C_good.PDF")
        (self.input_dir / "notes.txt").write_text("not a pdf")

        images = self.renderer.render_pages.return_value

        def render(path, dpi):
            if path == bad:
                raise RasterizationError("cannot render")
            return images

        self.renderer.render_pages.side_effect = render

        stats = self.processor.process_directory(self.input_dir, self.output_dir)

        self.assertEqual(stats['total_files'], 3)
        self.assertEqual(stats['successful'], 2)
        self.assertEqual(stats['failed'], 1)
        self.assertEqual(stats['errors'][0]['error_type'], "RasterizationError")
        self.assertEqual(stats['pages']['pages_processed'], 2)
        self.assertAlmostEqual(stats['success_rate'], 200 / 3)
        self.assertTrue((self.output_dir / "a_good.json").exists())
        self.assertTrue((self.output_dir / "C_good.json").exists())
        self.assertFalse((self.output_dir / "b_bad.json").exists())

    def test_discovery_is_sorted_and_ignores_other_files(self):
        """Test PDF discovery."""
        self.create_pdf("b.pdf")
        self.create_pdf("A.pdf")
        (self.input_dir / "readme.txt").write_text("x")
        (self.input_dir / "folder.pdf").mkdir()

        files = self.processor._discover_pdf_files(self.input_dir)

        self.assertEqual([f.name for f in files], ["A.pdf", "b.pdf"])

    def test_empty_directory(self):
        """Test processing a directory with no PDFs."""
        stats = self.processor.process_directory(self.input_dir, self.output_dir)

        self.assertEqual(stats['total_files'], 0)
        self.assertTrue(self.output_dir.exists())

    def test_missing_directory_raises(self):
        """Test that a missing input directory is an error."""
        with self.assertRaises(FileNotFoundError):
            self.processor.process_directory(self.temp_dir / "missing", self.output_dir)

    def test_file_instead_of_directory_raises(self):
        """Test that a file passed as input directory is an error."""
        pdf_path = self.create_pdf("single.pdf")
        with self.assertRaises(NotADirectoryError):
            self.processor.process_directory(pdf_path, self.output_dir)

    def test_write_failure_counts_as_error(self):
        """Test that an unwritable output marks the document as failed."""
        json_handler = Mock()
        json_handler.process_and_write.return_value = False
        processor = BatchProcessor(PipelineConfig(), renderer=self.renderer, ocr=self.ocr,
                                   json_handler=json_handler)

        self.assertFalse(processor.process_single_pdf(self.create_pdf("x.pdf"), self.output_dir / "x.json"))
        self.assertEqual(processor.stats['errors'][0]['error_type'], "JSONOutputError")

    def test_reset_stats(self):
        """Test statistics reset."""
        self.processor.process_single_pdf(self.create_pdf("r.pdf"), self.output_dir / "r.json")

        self.processor.reset_stats()

        self.assertEqual(self.processor.stats['total_files'], 0)
        self.assertEqual(self.processor.page_stats.pages_processed, 0)
        self.assertEqual(self.processor.stats["headings_by_level"]["H1"], 0)


if __name__ == '__main__':
    unittest.main()
