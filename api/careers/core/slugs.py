import re

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Lowercase, collapse runs of non-alphanumerics to '-', trim edge dashes."""
    return _NON_SLUG_RE.sub("-", value.strip().lower()).strip("-")


def is_valid_slug(value: str) -> bool:
    return bool(value) and slugify(value) == value
