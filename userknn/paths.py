from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ProjectPaths:
    repo_root: Path
    ratings_path: Path
    artifacts_dir: Path

    @classmethod
    def from_repo_root(
        cls,
        repo_root: Path,
        *,
        ratings_path: Path | str = "data/raw/ratings.csv",
        artifacts_dir: Path | str = "artifacts",
    ) -> "ProjectPaths":
        def _resolve(p: Path | str) -> Path:
            p_path = Path(p) if isinstance(p, str) else p
            if not p_path.is_absolute():
                p_path = repo_root / p_path
            return p_path.resolve()

        return cls(
            repo_root=repo_root,
            ratings_path=_resolve(ratings_path),
            artifacts_dir=_resolve(artifacts_dir),
        )


def get_repo_root() -> Path:
    """Return repo root by searching upwards for `config.yaml` or `.git`."""
    start = Path.cwd().resolve()
    if start.is_file():
        start = start.parent

    for candidate in (start, *start.parents):
        if (candidate / "config.yaml").is_file() or (candidate / ".git").exists():
            return candidate

    # Fallback: search upwards from this file (useful if called from elsewhere).
    start = Path(__file__).resolve().parent
    for candidate in (start, *start.parents):
        if (candidate / "config.yaml").is_file() or (candidate / ".git").exists():
            return candidate

    raise FileNotFoundError("Could not locate repo root (expected `config.yaml` or `.git`).")
