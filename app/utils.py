import re
import secrets
import string

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"\s+")

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SLUG_SUFFIX_LENGTH = 5


def generate_slug(title: str) -> str:
    """
    Return a URL-safe slug for *title* with a short random suffix.

    The suffix only makes collisions unlikely; two calls with the same
    title return different slugs and nothing checks the store.
    """
    base = _SLUG_STRIP_RE.sub("", title.lower().strip())
    base = _SLUG_SPACE_RE.sub("-", base)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(SLUG_SUFFIX_LENGTH))
    return f"{base}-{suffix}"
