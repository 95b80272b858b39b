"""
Unit tests for the sequential row pipeline.

Run: pytest tests/unit/test_import_pipeline.py -v
"""

import pytest

from services.import_pipeline import PipelineFullError, PipelineReentryError, RowPipeline


class TestRowPipeline:
    """Tests for RowPipeline"""

    def test_rows_run_in_queue_order(self):
        seen = []
        pipeline = RowPipeline(lambda line, payload: seen.append((line, payload)))
        for line in (2, 3, 5):
            pipeline.enqueue(line, f"row-{line}")

        handled = pipeline.drain()

        assert handled == 3
        assert seen == [(2, "row-2"), (3, "row-3"), (5, "row-5")]
        assert len(pipeline) == 0

    def test_one_row_in_flight(self):
        """Each handler starts only after the previous one returned."""
        active = []
        overlaps = []
        pipeline = None

        def handler(line, payload):
            if active:
                overlaps.append(line)
            active.append(line)
            assert pipeline.in_flight == line
            active.pop()

        pipeline = RowPipeline(handler)
        for line in range(2, 12):
            pipeline.enqueue(line, None)
        pipeline.drain()

        assert overlaps == []
        assert pipeline.in_flight is None

    def test_drain_from_handler_rejected(self):
        errors = []
        pipeline = None

        def handler(line, payload):
            try:
                pipeline.drain()
            except PipelineReentryError as e:
                errors.append(e)

        pipeline = RowPipeline(handler)
        pipeline.enqueue(2, None)
        pipeline.drain()

        assert len(errors) == 1
        assert not pipeline.is_draining

    def test_capacity(self):
        pipeline = RowPipeline(lambda line, payload: None, capacity=1)
        pipeline.enqueue(2, None)

        with pytest.raises(PipelineFullError):
            pipeline.enqueue(3, None)

    def test_escaping_exception_keeps_remaining_rows(self):
        def handler(line, payload):
            if line == 3:
                raise RuntimeError("boom")

        pipeline = RowPipeline(handler)
        for line in (2, 3, 4):
            pipeline.enqueue(line, None)

        with pytest.raises(RuntimeError):
            pipeline.drain()

        assert len(pipeline) == 1
        assert not pipeline.is_draining

    def test_empty_drain(self):
        assert RowPipeline(lambda line, payload: None).drain() == 0
