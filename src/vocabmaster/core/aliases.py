"""Key canonicalization for vocabulary sets reachable under several names.

A set file can be referenced as ``src/vocab/de.json``, ``vocab/de.json``,
``./vocab/de.json`` or ``/vocab/de.json`` depending on how it was fetched.
Prefix handling lives here so the store only ever deals with canonical ids.
"""

_STRIPPABLE_PREFIXES = ("./", "/", "src/")

VOCAB_NAMESPACE = "vocab"


def canonicalize(key: str) -> str:
    """Resolve any surface form of a set key to its canonical id."""
    canonical = key.strip().replace("\\", "/")
    stripped = True
    while stripped:
        stripped = False
        for prefix in _STRIPPABLE_PREFIXES:
            if canonical.startswith(prefix) and len(canonical) > len(prefix):
                canonical = canonical[len(prefix) :]
                stripped = True
    return canonical


def path_variants(path: str) -> list[str]:
    """Surface forms to look up in the backend, in lookup order."""
    candidates = [path]
    if path.startswith("src/"):
        candidates.append(path.removeprefix("src/"))
    else:
        candidates.append(f"src/{path}")
    if path.startswith("./"):
        candidates.append(path.removeprefix("./"))
    if path.startswith("/"):
        candidates.append(path.removeprefix("/"))

    # dict preserves insertion order
    return list(dict.fromkeys(candidates))


def vocab_prefix(user_id: str) -> str:
    return f"{user_id}:{VOCAB_NAMESPACE}:"


def vocab_key(user_id: str, alias: str) -> str:
    """Backend key of the learned-ids record for one alias."""
    return f"{vocab_prefix(user_id)}{alias}"
