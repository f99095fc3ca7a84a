"""
Filename parsing for ISO documents stored in Drive.

A document file is named ``<path>_<title>_Rev.<n>_<YYYY-MM-DD>.<ext>``, e.g.
``8.2.1_Gestione Ordini_Rev.3_2024-01-15.xlsx``. Anything else is not an ISO
document and is ignored by the sync.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Optional

# Letters and digits from any script, spaces and a small punctuation set.
# Underscores and hyphens are separators and never part of a title.
_TITLE = r"(?:[^\W_]|[ .,'’()&])+"

FILENAME_PATTERN = re.compile(
    r"^(\d+(?:\.\d+)*)[_-]"
    rf"({_TITLE})"
    r"[_-]Rev\.(0*[1-9]\d*)[_-]"
    r"(\d{4}-\d{2}-\d{2})"
    r"\.([A-Za-z0-9]+)$"
)

# Upload validation is stricter: underscores only and an alphabetic extension.
UPLOAD_FILENAME_PATTERN = re.compile(
    r"^\d+(?:\.\d+)*_"
    rf"{_TITLE}"
    r"_Rev\.0*[1-9]\d*_\d{4}-\d{2}-\d{2}\.[A-Za-z]+$"
)

FOLDER_URL_PATTERNS = (
    re.compile(r"^https://drive\.google\.com/drive/(?:u/\d+/)?folders/([A-Za-z0-9_-]+)(?:[?#]\S*)?$"),
    re.compile(r"^https://drive\.google\.com/drive/(?:u/\d+/)?my-drive/([A-Za-z0-9_-]+)(?:[?#]\S*)?$"),
    re.compile(r"^https://drive\.google\.com/open\?id=([A-Za-z0-9_-]+)(?:&\S*)?$"),
)
BARE_FOLDER_ID = re.compile(r"^[A-Za-z0-9_-]+$")
REVISION_LABEL = re.compile(r"^Rev\.(0*[1-9]\d*)$")


@dataclass(frozen=True)
class ParsedFilename:
    path: str
    title: str
    revision_number: int
    date: str
    file_type: str

    @property
    def revision(self) -> str:
        return f"Rev.{self.revision_number}"


def parse_filename(name: str) -> Optional[ParsedFilename]:
    """Parse an ISO document filename, or return None when it does not match."""
    if not name:
        return None
    normalized = unicodedata.normalize("NFC", name.strip())
    match = FILENAME_PATTERN.match(normalized)
    if not match:
        return None

    path, raw_title, revision, date, extension = match.groups()
    title = raw_title.strip()
    if not title:
        return None

    return ParsedFilename(
        path=path,
        title=title,
        revision_number=int(revision),
        date=date,
        file_type=extension.lower(),
    )


def canonical_revision(label: str) -> Optional[str]:
    """'Rev.03' -> 'Rev.3'; None for anything but a positive revision label."""
    match = REVISION_LABEL.match(label.strip()) if label else None
    if not match:
        return None
    return f"Rev.{int(match.group(1))}"


def is_valid_upload_filename(name: str) -> bool:
    if not name:
        return False
    return bool(UPLOAD_FILENAME_PATTERN.match(unicodedata.normalize("NFC", name.strip())))


def extract_folder_id(value: str) -> Optional[str]:
    """Accept a bare Drive folder id or a known Drive folder URL."""
    if not value:
        return None
    candidate = value.strip()
    for pattern in FOLDER_URL_PATTERNS:
        match = pattern.match(candidate)
        if match:
            return match.group(1)
    if BARE_FOLDER_ID.match(candidate):
        return candidate
    return None
