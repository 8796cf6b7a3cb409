import pytest
from calforge.content_line import (
    ContentLine,
    content_lines,
    format_params,
    parse_content_line,
    unfold,
)
from calforge.errors import GrammarError


class TestUnfold:
    def test_unfold_continuation_line(self):
        content = "DESCRIPTION:This is a long\r\n  description\r\nSUMMARY:Short"

        assert unfold(content) == [
            "DESCRIPTION:This is a long description",
            "SUMMARY:Short",
        ]

    def test_unfold_removes_single_marker_only(self):
        content = "DESCRIPTION:ab\r\n\tc\r\n   d"

        assert unfold(content) == ["DESCRIPTION:abc  d"]

    def test_unfold_accepts_bare_newlines(self):
        assert unfold("A:1\n B\nC:2\n") == ["A:1B", "C:2"]

    def test_unfold_drops_blank_lines(self):
        assert unfold("A:1\r\n\r\n\r\nB:2\r\n") == ["A:1", "B:2"]

    def test_unfold_empty(self):
        assert unfold("") == []

    def test_unfold_rejects_bytes(self):
        with pytest.raises(TypeError):
            unfold(b"SUMMARY:x")


class TestParseContentLine:
    def test_simple_line(self):
        line = parse_content_line("SUMMARY:Team Meeting")

        assert line == ContentLine("SUMMARY", {}, "Team Meeting")

    def test_value_keeps_colons(self):
        line = parse_content_line("URL:https://example.com:8080/a")

        assert line.value == "https://example.com:8080/a"

    def test_empty_value(self):
        assert parse_content_line("DESCRIPTION:").value == ""

    def test_params(self):
        line = parse_content_line("DTSTART;VALUE=DATE;TZID=Europe/Paris:20250101")

        assert line.key == "DTSTART"
        assert line.params == {"TZID": "Europe/Paris", "VALUE": "DATE"}
        assert list(line.params) == ["TZID", "VALUE"]

    def test_quoted_param_keeps_delimiters(self):
        line = parse_content_line('ATTENDEE;CN="Doe, Jane; PhD:x":mailto:jane@example.com')

        assert line.params == {"CN": "Doe, Jane; PhD:x"}
        assert line.value == "mailto:jane@example.com"

    def test_bare_param_may_hold_commas(self):
        line = parse_content_line("ATTENDEE;MEMBER=a,b:mailto:x@example.com")

        assert line.params == {"MEMBER": "a,b"}

    def test_quoted_value_list(self):
        line = parse_content_line('ATTENDEE;DELEGATED-TO="mailto:a@x","mailto:b@x":mailto:c@x')

        assert line.params == {"DELEGATED-TO": "mailto:a@x,mailto:b@x"}
        assert line.value == "mailto:c@x"

    def test_mixed_value_list(self):
        line = parse_content_line('X-A;MEMBER="mailto:a@x",b;ROLE=CHAIR:v')

        assert line.params == {"MEMBER": "mailto:a@x,b", "ROLE": "CHAIR"}

    def test_unterminated_quote_in_value_list(self):
        with pytest.raises(GrammarError) as excinfo:
            parse_content_line('X-A;MEMBER="a","b:v')

        assert excinfo.value.remainder == '"b:v'

    def test_param_order_does_not_matter(self):
        left = parse_content_line("X-A;B=2;A=1:v")
        right = parse_content_line("X-A;A=1;B=2:v")

        assert left == right

    def test_missing_colon(self):
        with pytest.raises(GrammarError) as excinfo:
            parse_content_line("SUMMARY")

        assert excinfo.value.remainder == ""

    def test_unterminated_quote_carries_remainder(self):
        with pytest.raises(GrammarError) as excinfo:
            parse_content_line('ATTENDEE;CN="Jane:mailto:jane@example.com')

        assert excinfo.value.remainder == '"Jane:mailto:jane@example.com'

    def test_missing_equals(self):
        with pytest.raises(GrammarError) as excinfo:
            parse_content_line("DTSTART;VALUE:20250101")

        assert excinfo.value.remainder == ":20250101"

    def test_empty_key(self):
        with pytest.raises(GrammarError):
            parse_content_line(":value")

    def test_envelope_markers_are_rejected(self):
        with pytest.raises(GrammarError):
            parse_content_line("BEGIN:VEVENT")

    def test_grammar_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_content_line("no colon here")


class TestContentLines:
    def test_keeps_duplicates_in_order(self):
        lines = content_lines("COMMENT:one\r\nCOMMENT:two\r\n")

        assert [line.value for line in lines] == ["one", "two"]

    def test_empty_body(self):
        assert content_lines("") == []

    def test_fails_on_first_bad_line(self):
        with pytest.raises(GrammarError):
            content_lines("SUMMARY:ok\r\nbroken\r\n")


class TestFormatParams:
    def test_no_params(self):
        assert format_params({}) == ""

    def test_sorted_and_quoted(self):
        params = {"ROLE": "CHAIR", "CN": "Doe, Jane"}

        assert format_params(params) == ';CN="Doe, Jane";ROLE=CHAIR'

    def test_value_list_elements_are_quoted(self):
        params = {"DELEGATED-TO": "mailto:a@x,mailto:b@x"}

        assert format_params(params) == ';DELEGATED-TO="mailto:a@x","mailto:b@x"'

    def test_value_list_round_trip(self):
        text = 'ATTENDEE;DELEGATED-TO="mailto:a@x","mailto:b@x":mailto:c@x'
        line = parse_content_line(text)

        assert line.render() == text
        assert parse_content_line(line.render()) == line

    def test_lines_are_not_hashable(self):
        assert ContentLine.__hash__ is None

    def test_render_round_trip(self):
        text = 'ATTENDEE;CN="Doe, Jane";ROLE=CHAIR:mailto:jane@example.com'

        assert parse_content_line(text).render() == text
