import io

from voice_dictation.adapters.editors import MarkdownFileEditor, TerminalEditor


class TestMarkdownFileEditor:
    def test_appends_to_end_by_default(self, tmp_path):
        note = tmp_path / "note.md"
        note.write_text("# Title\n", encoding="utf-8")
        editor = MarkdownFileEditor(note)

        assert editor.insert_at_cursor("hello")
        assert note.read_text(encoding="utf-8") == "# Title\nhello"

    def test_cursor_advances_past_insertion(self, tmp_path):
        note = tmp_path / "note.md"
        note.write_text("ab", encoding="utf-8")
        editor = MarkdownFileEditor(note, cursor=1)

        editor.insert_at_cursor("X")
        editor.insert_at_cursor("Y")
        assert note.read_text(encoding="utf-8") == "aXYb"
        assert editor.cursor == 3

    def test_creates_missing_note(self, tmp_path):
        note = tmp_path / "notes" / "today.md"
        editor = MarkdownFileEditor(note)
        assert editor.insert_at_cursor("**bold**")
        assert note.read_text(encoding="utf-8") == "**bold**"

    def test_cursor_clamped_to_content(self, tmp_path):
        note = tmp_path / "note.md"
        note.write_text("abc", encoding="utf-8")
        editor = MarkdownFileEditor(note, cursor=99)
        editor.insert_at_cursor("!")
        assert note.read_text(encoding="utf-8") == "abc!"

    def test_selection(self, tmp_path):
        note = tmp_path / "note.md"
        note.write_text("hello world", encoding="utf-8")
        editor = MarkdownFileEditor(note)

        assert editor.get_selection() == ""
        editor.select(11, 6)
        assert editor.get_selection() == "world"

    def test_insert_clears_selection(self, tmp_path):
        note = tmp_path / "note.md"
        note.write_text("hello", encoding="utf-8")
        editor = MarkdownFileEditor(note)
        editor.select(0, 5)
        editor.insert_at_cursor(" there")
        assert editor.get_selection() == ""

    def test_unwritable_note(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        editor = MarkdownFileEditor(blocker / "note.md")
        assert not editor.insert_at_cursor("text")


class TestTerminalEditor:
    def test_writes_line(self):
        stream = io.StringIO()
        editor = TerminalEditor(stream)
        assert editor.insert_at_cursor("**hello**")
        assert stream.getvalue() == "**hello**\n"

    def test_no_selection(self):
        assert TerminalEditor(io.StringIO()).get_selection() == ""
