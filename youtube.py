import re
from typing import Optional

from constants import VIDEO_ID_LENGTH

# Greedy prefix: the rightmost recognized marker wins, the id runs up to '#', '&' or '?'.
YOUTUBE_URL_PATTERN = re.compile(r"^.*(youtu.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")


def resolve_video_id(value: Optional[str]) -> Optional[str]:
    """Extract the video id from a YouTube URL or pass a bare id through.

    Accepts ``watch?v=``, ``embed/``, ``youtu.be/``, ``v/``, ``u/<x>/`` and
    ``&v=`` shapes. When nothing that looks like an id is found the input is
    returned unchanged, so callers that need a strict id must check the result
    with :func:`is_canonical_video_id`. Returns ``None`` for empty input.
    """
    if not value:
        return None
    match = YOUTUBE_URL_PATTERN.match(value)
    if match and len(match.group(2)) == VIDEO_ID_LENGTH:
        return match.group(2)
    return value


def is_canonical_video_id(value: Optional[str]) -> bool:
    return isinstance(value, str) and len(value) == VIDEO_ID_LENGTH
