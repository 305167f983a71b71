"""Loading local files as chat attachments."""

import base64
import mimetypes
from pathlib import Path

from .models import Attachment

FALLBACK_MIME_TYPE = "application/octet-stream"


def load_attachment(path: str | Path) -> Attachment:
    """Read a file and encode it for the chat endpoint.

    Args:
        path: Image or PDF to attach

    Returns:
        Attachment with base64 data and a guessed MIME type

    Raises:
        FileNotFoundError: If the path does not exist
    """
    file_path = Path(path)
    data = file_path.read_bytes()
    mime_type, _ = mimetypes.guess_type(file_path.name)

    return Attachment(
        data_base64=base64.b64encode(data).decode("ascii"),
        mime_type=mime_type or FALLBACK_MIME_TYPE,
        name=file_path.name,
    )
