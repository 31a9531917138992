import unittest

from veto_analyzer.analysis.export import outputs_to_frame, summary_to_frame
from veto_analyzer.analysis.pipeline import process_run
from veto_analyzer.ingest.stream import (
    DataFrameRecordStream,
    SequenceRecordStream,
    peek_run_number,
    records_to_frame,
    run_metadata_from_stream,
)
from veto_analyzer.models.errors import ErrorKind
from veto_analyzer.validation.synthetic import make_record, make_veto_run


class TestRecordStreams(unittest.TestCase):
    def setUp(self):
        self.records = [
            make_record(0, time_sec=1.0),
            make_record(1, time_sec=1.5, flags=[ErrorKind.BAD_TIMESTAMP], bad_scaler=True),
            make_record(2, time_sec=2.0, counter=0),
        ]

    def test_frame_stream_reproduces_records(self):
        stream = DataFrameRecordStream(records_to_frame(self.records))
        self.assertEqual(len(stream), 3)
        self.assertEqual(list(stream), self.records)
        # re-iterable: identical records on every pass
        self.assertEqual(list(stream), list(stream))

    def test_optional_columns_default(self):
        df = records_to_frame(self.records).drop(columns=["time_sbc", "bad_scaler", "err_4"])
        recs = list(DataFrameRecordStream(df))
        self.assertEqual(recs[0].time_sbc, 0.0)
        self.assertFalse(recs[1].bad_scaler)
        self.assertFalse(recs[1].flag(ErrorKind.BAD_TIMESTAMP))

    def test_missing_required_column(self):
        df = records_to_frame(self.records).drop(columns=["qdc_7"])
        with self.assertRaises(KeyError):
            DataFrameRecordStream(df)

    def test_sequence_stream_requires_entry_order(self):
        with self.assertRaises(ValueError):
            SequenceRecordStream([self.records[1], self.records[0]])
        stream = SequenceRecordStream(self.records)
        self.assertIs(stream[2], self.records[2])

    def test_run_metadata_from_stream(self):
        stream = SequenceRecordStream(self.records)
        self.assertEqual(peek_run_number(stream), 20000)
        meta = run_metadata_from_stream(stream, 100, 200)
        self.assertEqual((meta.run, meta.start, meta.stop), (20000, 100, 200))

        self.assertIsNone(peek_run_number(SequenceRecordStream([])))
        with self.assertRaises(ValueError):
            run_metadata_from_stream(SequenceRecordStream([]), 0, 1)
        with self.assertRaises(ValueError):
            run_metadata_from_stream(SequenceRecordStream([make_record(0, time_sec=1.0, run=61000000)]), 0, 1)


class TestExport(unittest.TestCase):
    def test_output_and_summary_frames(self):
        recs, meta = make_veto_run(60, n_led=10, seed=2)
        result = process_run(DataFrameRecordStream(records_to_frame(recs)), meta)

        out = outputs_to_frame(result.outputs)
        self.assertEqual(len(out), 60)
        self.assertEqual(out["entry"].tolist(), list(range(60)))
        for col in ("time", "is_led", "coin_vertical", "qdc_31", "rel_qdc_0", "plane_true_11", "error_28"):
            self.assertIn(col, out.columns)
        self.assertNotIn("error_0", out.columns)
        self.assertEqual(int(out["is_led"].sum()), 10)

        summ = summary_to_frame(result.summary)
        self.assertEqual(len(summ), 1)
        self.assertIn("thresh_31", summ.columns)
        self.assertIn("error_count_26", summ.columns)
        self.assertEqual(int(summ["run"].iloc[0]), meta.run)


if __name__ == "__main__":
    unittest.main()
