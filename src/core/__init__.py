"""Core layer: configuration, logging, evidence access and artifact storage."""

from .config import AppConfig, load_app_config  # noqa: F401
from .artifact_store import SqliteArtifactSink, init_db  # noqa: F401
# NOTE: cli not exported from package to keep `import core` free of extractor imports
# Import directly: from core.cli import main
