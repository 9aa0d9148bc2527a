import logging
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel

logger = logging.getLogger(__name__)

READ_FAILURE_MARKER = "[Failed to read file content]"


class Attachment(BaseModel):
    name: str
    content: str


def read_attachment(path) -> Attachment:
    """Read a file as text for inclusion in the next outgoing message."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Failed to read file %s: %s", path.name, e)
        content = READ_FAILURE_MARKER
    return Attachment(name=path.name, content=content)


def compose_message(text: str, attachments: Iterable[Attachment] = ()) -> str:
    """Append attachment blocks to the user's text for sending upstream."""
    file_contents = "".join(
        f"\n\n--- File: {a.name} ---\n{a.content}" for a in attachments
    )
    return (text.strip() + file_contents).strip()
