"""URL slugs for seller products."""

import re
import unicodedata


def to_slug(text: str) -> str:
    """Lowercase, ASCII-only, hyphen separated: "Rust for Pros!" -> "rust-for-pros"."""
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^\w\s-]", "", text.lower().strip())
    return re.sub(r"[-\s_]+", "-", text).strip("-")
