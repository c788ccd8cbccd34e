from __future__ import annotations

import os


def norm_member_name(name: str) -> str:
    """Normalize an archive member name to a relative forward-slash path.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments and names that normalize to nothing
    """
    p = name.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError(f"Member name may not contain '..': {name!r}")
    if not parts:
        raise ValueError(f"Member name is empty after normalization: {name!r}")
    return "/".join(parts)


def member_output_path(outdir: str, name: str) -> str:
    return os.path.join(outdir, *norm_member_name(name).split("/"))
