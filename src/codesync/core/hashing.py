"""Content fingerprints for change detection.

A fingerprint is an MD5 digest over the relative path, the file contents and
the repository identifier. The remote index computes the same digest, so the
algorithm is part of the wire contract and not a security primitive.
"""

import hashlib


def compute_fingerprint(relative_path: str, content: bytes, repo_id: str) -> str:
    """Compute the fingerprint of one file.

    Args:
        relative_path: Path as sent to the server (e.g., "./src/app.py").
        content: Raw file contents.
        repo_id: Remote repository identifier.

    Returns:
        Hexadecimal digest string.
    """
    hasher = hashlib.md5(usedforsecurity=False)
    hasher.update(relative_path.encode("utf-8"))
    hasher.update(content)
    hasher.update(repo_id.encode("utf-8"))
    return hasher.hexdigest()
