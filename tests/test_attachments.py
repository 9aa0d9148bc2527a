from chatrelay.conversation.attachments import (
    READ_FAILURE_MARKER,
    Attachment,
    compose_message,
    read_attachment,
)


def test_read_text_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("line one\nline two", encoding="utf-8")
    attachment = read_attachment(path)
    assert attachment.name == "notes.txt"
    assert attachment.content == "line one\nline two"


def test_unreadable_files_use_marker(tmp_path):
    missing = read_attachment(tmp_path / "gone.txt")
    assert missing.content == READ_FAILURE_MARKER

    binary = tmp_path / "blob.bin"
    binary.write_bytes(b"\xff\xfe\x00\x81")
    assert read_attachment(binary).content == READ_FAILURE_MARKER


def test_compose_appends_file_blocks():
    message = compose_message(
        "  look at these  ",
        [Attachment(name="a.py", content="x = 1"), Attachment(name="b.md", content="# B")],
    )
    assert message == (
        "look at these\n\n--- File: a.py ---\nx = 1\n\n--- File: b.md ---\n# B"
    )


def test_compose_without_text():
    assert compose_message("", [Attachment(name="a.txt", content="hi")]) == "--- File: a.txt ---\nhi"
    assert compose_message("  plain ") == "plain"
