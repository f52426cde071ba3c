"""Best-effort plain text from stored resume documents."""
import logging
import os

from pypdf import PdfReader

log = logging.getLogger(__name__)

NO_RESUME = "No resume provided."
UNREADABLE_RESUME = "Could not read resume content."


def extract_resume_text(path):
    """Return the text of a PDF or TXT resume, or a placeholder on failure."""
    suffix = os.path.splitext(path)[1].lower()
    try:
        if suffix == ".pdf":
            reader = PdfReader(path)
            text = "\n".join(page.extract_text() or "" for page in reader.pages)
        elif suffix == ".txt":
            with open(path, encoding="utf-8", errors="ignore") as f:
                text = f.read()
        else:
            log.warning("Unsupported resume format %r for %s", suffix, path)
            return UNREADABLE_RESUME
    except Exception as exc:
        # Any parser failure degrades to the placeholder
        log.warning("Could not read resume at %s: %s", path, exc)
        return UNREADABLE_RESUME

    text = text.strip()
    if not text:
        log.warning("Resume at %s contains no extractable text", path)
        return UNREADABLE_RESUME
    return text


def load_resume_text(upload_folder, reference):
    """Resolve a stored resume reference inside the upload folder."""
    if not reference:
        return NO_RESUME
    return extract_resume_text(os.path.join(upload_folder, os.path.basename(reference)))
