"""Tests for incremental recovery of streamed component arrays."""

import json

import pytest

from genui.stream.parser import ComponentStreamParser, try_extract

SAMPLE = json.dumps(
    [
        {"type": "header", "props": {"content": "Coffee [near] you", "ID": "h1"}},
        {"type": "text", "props": {"content": 'He said "hi, there" {ok}'}},
        {"type": "list-item", "props": {"content": "Cafe", "columns": "4"}},
        {"type": "button", "props": {"content": "More\\nplease"}},
    ]
)


class TestTryExtract:
    def test_reports_incomplete_until_first_terminator(self):
        steps = [
            "[",
            '[{"type":"text"',
            '[{"type":"text","props":{"content":"Hi"}}',
        ]
        for buffer in steps:
            result = try_extract(buffer)
            assert result.consumed is False
            assert result.elements == []
            assert result.remainder == buffer

        result = try_extract('[{"type":"text","props":{"content":"Hi"}},')
        assert result.consumed is True
        assert result.elements == [{"type": "text", "props": {"content": "Hi"}}]
        assert result.remainder == ""
        assert result.in_array is True

    def test_closed_elements_in_one_buffer_arrive_as_one_batch(self):
        result = try_extract('[{"type":"a"},{"type":"b"},{"type":"c"')
        assert [item["type"] for item in result.elements] == ["a", "b"]
        assert result.remainder == '{"type":"c"'

    def test_closing_bracket_releases_final_element(self):
        result = try_extract('{"type":"c"}]', in_array=True)
        assert result.elements == [{"type": "c"}]
        assert result.in_array is False

    def test_no_premature_emission_for_any_prefix(self):
        first_terminator = SAMPLE.index("},") + 1
        for end in range(first_terminator):
            result = try_extract(SAMPLE[:end])
            assert result.consumed is False
            assert result.elements == []

    def test_brackets_and_commas_inside_strings_are_ignored(self):
        result = try_extract(SAMPLE)
        assert result.elements == json.loads(SAMPLE)

    def test_double_comma_is_tolerated(self):
        result = try_extract('[{"type":"a"},,{"type":"b"}]')
        assert result.elements == [{"type": "a"}, {"type": "b"}]

    def test_skips_code_fence_and_prose(self):
        result = try_extract('Here you go:\n```json\n[{"type":"a"}]\n```')
        assert result.elements == [{"type": "a"}]
        assert result.remainder == "\n```"

    def test_malformed_element_is_skipped(self):
        result = try_extract('[{"type": oops},{"type":"b"},')
        assert result.elements == [{"type": "b"}]


class TestComponentStreamParser:
    def test_character_by_character_matches_whole_parse(self):
        parser = ComponentStreamParser()
        collected = []
        for char in SAMPLE:
            collected.extend(parser.feed(char))
        assert collected == json.loads(SAMPLE)
        assert parser.finish() == []

    @pytest.mark.parametrize("size", [2, 5, 17])
    def test_chunked_feed_matches_whole_parse(self, size):
        parser = ComponentStreamParser()
        collected = []
        for start in range(0, len(SAMPLE), size):
            collected.extend(parser.feed(SAMPLE[start : start + size]))
        assert collected == json.loads(SAMPLE)

    def test_each_element_is_emitted_once(self):
        parser = ComponentStreamParser()
        assert parser.feed('[{"type":"a"},') == [{"type": "a"}]
        assert parser.feed('{"type":"b"}') == []
        assert parser.feed("]") == [{"type": "b"}]
        assert parser.buffer == ""

    def test_finish_recovers_unterminated_last_element(self):
        parser = ComponentStreamParser()
        parser.feed('[{"type":"a"},{"type":"b","props":{}}')
        assert parser.finish() == [{"type": "b", "props": {}}]

    def test_finish_discards_truncated_element(self, caplog):
        parser = ComponentStreamParser()
        parser.feed('[{"type":"a"},{"type":"b","pro')
        with caplog.at_level("WARNING"):
            assert parser.finish() == []
        assert "incomplete trailing fragment" in caplog.text

    def test_discard_drops_partial_text(self):
        parser = ComponentStreamParser()
        parser.feed('[{"type":"a"},{"type":"b"')
        assert parser.discard() == '{"type":"b"'
        assert parser.finish() == []

    def test_incomplete_parse_logged_once(self, caplog):
        parser = ComponentStreamParser()
        with caplog.at_level("DEBUG", logger="genui.stream.parser"):
            for char in '[{"type":"text","props":{}}':
                parser.feed(char)
        notes = [r for r in caplog.records if "accumulating" in r.getMessage()]
        assert len(notes) == 1


class TestFinish:
    def test_comma_inside_final_string_is_kept(self):
        parser = ComponentStreamParser()
        assert parser.feed('[{"type":"text","content":"a,"}') == []
        assert parser.finish() == [{"type": "text", "content": "a,"}]

    def test_comma_near_end_of_nested_value_is_kept(self):
        parser = ComponentStreamParser()
        parser.feed('[{"type":"a"},{"type":"text","props":{"content":"x, y"}}')
        assert parser.finish() == [
            {"type": "text", "props": {"content": "x, y"}}
        ]

    def test_dangling_separator_is_dropped(self):
        parser = ComponentStreamParser()
        assert parser.feed('[{"type":"a"},\n ') == [{"type": "a"}]
        assert parser.finish() == []

    def test_element_without_opening_bracket_is_recovered(self):
        parser = ComponentStreamParser()
        parser.feed('Sure: {"type":"a","props":{}}')
        assert parser.finish() == [{"type": "a", "props": {}}]

    def test_unclosed_object_is_discarded(self, caplog):
        parser = ComponentStreamParser()
        parser.feed('[{"type":"a"},{"type":"b","props":{}')
        with caplog.at_level("WARNING"):
            assert parser.finish() == []
        assert "incomplete trailing fragment" in caplog.text

    def test_finish_resets_parser(self):
        parser = ComponentStreamParser()
        parser.feed('[{"type":"a"}')
        parser.finish()
        assert parser.buffer == ""
        assert parser.finish() == []
