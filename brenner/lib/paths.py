import os
from pathlib import Path


def dot_brenner() -> Path:
    override = os.environ.get("BRENNER_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".brenner"


def package_root() -> Path:
    return Path(__file__).resolve().parent.parent


def research_dir(base_dir: Path) -> Path:
    return Path(base_dir) / ".research"


def anomalies_dir(base_dir: Path) -> Path:
    return research_dir(base_dir) / "anomalies"


def anomaly_session_file(base_dir: Path, session_id: str) -> Path:
    return anomalies_dir(base_dir) / f"{session_id}-anomalies.json"


def anomaly_index_file(base_dir: Path) -> Path:
    return research_dir(base_dir) / "anomaly-index.json"


def artifacts_dir(base_dir: Path) -> Path:
    return research_dir(base_dir) / "artifacts"


def artifact_file(base_dir: Path, session_id: str) -> Path:
    return artifacts_dir(base_dir) / f"{session_id}-artifact.json"
