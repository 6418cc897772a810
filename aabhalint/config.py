from __future__ import annotations

import os
from pathlib import Path

BUNDLED_POLICY = Path(__file__).resolve().parent / "policies" / "default.yaml"

_SEARCH_PATHS = [
    Path("aabhalint.yaml"),
    Path.home() / ".config" / "aabhalint" / "policy.yaml",
]


class PolicyLocator:
    """Resolves which policy file to load: explicit path, environment, local files, bundled default."""

    def __init__(self, policy_path: Path | None = None) -> None:
        self._explicit_path = policy_path

    def resolve(self) -> Path:
        # An explicit path is returned even if missing so loading reports the error
        if self._explicit_path:
            return self._explicit_path

        env_path = os.environ.get("AABHALINT_POLICY")
        if env_path:
            p = Path(env_path)
            if p.exists():
                return p

        for p in _SEARCH_PATHS:
            if p.exists():
                return p

        return BUNDLED_POLICY

    def searched_locations(self) -> list[str]:
        """Return the list of paths that would be checked, in order."""
        locations: list[str] = []
        if self._explicit_path:
            locations.append(str(self._explicit_path))
        env_path = os.environ.get("AABHALINT_POLICY")
        if env_path:
            locations.append(f"$AABHALINT_POLICY ({env_path})")
        locations.extend(str(p) for p in _SEARCH_PATHS)
        locations.append(str(BUNDLED_POLICY))
        return locations
