"""
Unit tests for the tag scanner
"""
from todo_collector.tag_scanner import TagMatch, compile_tag_patterns, scan


class TestScan:
    def test_basic_match(self):
        matches = list(scan("intro\n#TODO buy milk\nother", ["#TODO"]))
        assert matches == [TagMatch(tag="#TODO", text="buy milk", line_no=1)]

    def test_indented_tag(self):
        matches = list(scan("   #t call mom", ["#TODO", "#t"]))
        assert [m.text for m in matches] == ["call mom"]

    def test_tag_needs_whitespace_after(self):
        assert list(scan("#TODObuy milk\n#TODO", ["#TODO"])) == []

    def test_tag_must_start_line(self):
        assert list(scan("remember #TODO buy milk", ["#TODO"])) == []

    def test_first_tag_wins(self):
        """A line matched by two tags yields one item"""
        matches = list(scan("#a #b ship it", ["#a", "#a #b"]))
        assert matches == [TagMatch(tag="#a", text="#b ship it", line_no=0)]

    def test_tags_are_literal(self):
        """Regex characters in tags have no special meaning"""
        body = "axb not this\na.b this one\n+todo and this"
        matches = list(scan(body, ["a.b", "+todo"]))
        assert [m.text for m in matches] == ["this one", "and this"]

    def test_case_sensitive(self):
        assert list(scan("#todo lower", ["#TODO"])) == []

    def test_crlf_lines(self):
        matches = list(scan("#TODO one\r\n#TODO two\r\n", ["#TODO"]))
        assert [m.text for m in matches] == ["one", "two"]

    def test_scan_is_restartable(self):
        result = scan("#TODO one\n#TODO two", ["#TODO"])
        assert list(result) == list(result)
        assert len(list(result)) == 2

    def test_no_tags(self):
        assert list(scan("#TODO one", [])) == []


def test_blank_tags_ignored():
    patterns = compile_tag_patterns(["", "  ", "#TODO"])
    assert [tag for tag, _ in patterns] == ["#TODO"]
