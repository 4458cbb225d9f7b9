import unittest
from types import SimpleNamespace

from tldw_chat.accumulator import StreamingAccumulator, extract_reasoning, extract_token
from tldw_chat.errors import ConfigurationError
from tldw_chat.reasoning import get_merge_strategy, merge_cumulative, merge_incremental


def reasoning_chunk(text: str) -> dict:
    return {"choices": [{"delta": {"reasoning_content": text}}]}


def content_chunk(text: str) -> dict:
    return {"choices": [{"delta": {"content": text}, "finish_reason": None}]}


class ExtractionTests(unittest.TestCase):
    def test_token_precedence(self) -> None:
        self.assertEqual(extract_token("raw"), "raw")
        self.assertEqual(extract_token({"content": "flat", "choices": [{"delta": {"content": "nested"}}]}), "flat")
        self.assertEqual(extract_token(content_chunk("nested")), "nested")
        self.assertEqual(extract_token(SimpleNamespace(content="attr")), "attr")
        self.assertEqual(extract_token({"choices": []}), "")
        self.assertEqual(extract_token({}), "")

    def test_reasoning_locations(self) -> None:
        self.assertEqual(extract_reasoning(reasoning_chunk("r")), "r")
        self.assertEqual(extract_reasoning({"additional_kwargs": {"reasoning_content": "k"}}), "k")
        self.assertEqual(extract_reasoning({"reasoning_content": "flat"}), "flat")
        self.assertEqual(extract_reasoning("raw"), "")
        self.assertEqual(extract_reasoning(reasoning_chunk("")), "")


class MergeStrategyTests(unittest.TestCase):
    def test_incremental_appends_under_single_open_tag(self) -> None:
        text = merge_incremental("", "r1")
        self.assertEqual(text, "<think>r1")
        self.assertEqual(merge_incremental(text, "r2"), "<think>r1r2")

    def test_cumulative_suppresses_repeated_prefix(self) -> None:
        text = merge_cumulative("", "step one")
        self.assertEqual(merge_cumulative(text, "step one, step two"), "<think>step one, step two")
        self.assertEqual(merge_cumulative(text, " more"), "<think>step one more")

    def test_lookup_by_name(self) -> None:
        self.assertIs(get_merge_strategy("Cumulative"), merge_cumulative)
        with self.assertRaises(ConfigurationError):
            get_merge_strategy("guess")


class StreamingAccumulatorTests(unittest.TestCase):
    def test_reasoning_then_content_closes_block_once(self) -> None:
        acc = StreamingAccumulator()
        tokens = [acc.feed(c) for c in (reasoning_chunk("r1"), reasoning_chunk("r2"), content_chunk("Hello"))]

        expected = merge_incremental(merge_incremental("", "r1"), "r2") + "</think>" + "Hello"
        self.assertEqual(tokens, ["", "", "Hello"])
        self.assertEqual(acc.persist_text, expected)
        self.assertEqual(acc.full_text, expected)
        self.assertEqual(acc.persist_text.count("</think>"), 1)
        self.assertFalse(acc.in_reasoning_block)

    def test_marker_not_repeated_for_later_content(self) -> None:
        acc = StreamingAccumulator()
        for chunk in (reasoning_chunk("think"), content_chunk("a"), content_chunk("b"), {"choices": [{"delta": {}}]}):
            acc.feed(chunk)
        self.assertEqual(acc.full_text, "<think>think</think>ab")

    def test_empty_chunk_closes_reasoning_block(self) -> None:
        acc = StreamingAccumulator()
        acc.feed(reasoning_chunk("r"))
        self.assertTrue(acc.in_reasoning_block)
        self.assertEqual(acc.feed({"choices": [{"delta": {}, "finish_reason": "stop"}]}), "")
        self.assertEqual(acc.full_text, "<think>r</think>")
        self.assertFalse(acc.in_reasoning_block)

    def test_plain_stream_has_no_markers(self) -> None:
        acc = StreamingAccumulator()
        for chunk in ("Hel", {"content": "lo"}, content_chunk("!")):
            acc.feed(chunk)
        self.assertEqual(acc.full_text, "Hello!")
        self.assertEqual(acc.persist_text, "Hello!")
        self.assertIsNone(acc.reasoning_time_ms)

    def test_injected_strategy_and_clock(self) -> None:
        ticks = iter([10.0, 10.25])
        acc = StreamingAccumulator(merge_cumulative, clock=lambda: next(ticks))
        for chunk in (reasoning_chunk("a"), reasoning_chunk("ab"), content_chunk("done")):
            acc.feed(chunk)
        self.assertEqual(acc.persist_text, "<think>ab</think>done")
        self.assertEqual(acc.reasoning_time_ms, 250)


if __name__ == "__main__":
    unittest.main()
