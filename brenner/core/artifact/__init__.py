from .document import (
    artifact_from_dict,
    artifact_to_dict,
    compile_artifact,
    create_artifact,
    load_artifact,
    save_artifact,
)
from .ingest import IngestResult, anomalies_from_operations, ingest_thread
from .merge import AppliedOperation, MergeResult, MergeWarning, RejectedOperation, merge
from .render import render_artifact_markdown

__all__ = [
    "AppliedOperation",
    "IngestResult",
    "MergeResult",
    "MergeWarning",
    "RejectedOperation",
    "anomalies_from_operations",
    "artifact_from_dict",
    "artifact_to_dict",
    "compile_artifact",
    "create_artifact",
    "ingest_thread",
    "load_artifact",
    "merge",
    "render_artifact_markdown",
    "save_artifact",
]
