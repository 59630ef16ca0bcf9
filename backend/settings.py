"""
Centralized runtime configuration for the export parser.

This module uses `python-dotenv` to read a local `.env` file during
development and exposes a Pydantic `Settings` model named `settings`.

Why this exists:
- Keeps configuration in one place so other modules import `settings`.
- Provides typed fields with defaults and simple validation.

Environment variables used:
- `CHUNK_SIZE_BYTES` — bytes read from the export per chunk (8 MiB).
- `BUFFER_TAIL_CHARS` — characters kept when a buffer holds no marker.
- `PARSE_MODE` — default mode, `fast` or `detailed`.
- `WORKOUT_ACTIVITY_TYPES` — comma-separated workout activity types to extract.
- `EXPORTS_DIR` — directory the HTTP routes are allowed to read exports from.
- `PROGRESS_QUEUE_SIZE` — bound of a parse job's message queue.
- `MAX_JOBS` — maximum number of parse jobs kept in memory.
- `LOG_LEVEL` — root logging level for the entry points.

Example `.env`:
PARSE_MODE=detailed
WORKOUT_ACTIVITY_TYPES=HKWorkoutActivityTypeRunning,HKWorkoutActivityTypeWalking
EXPORTS_DIR=/data/apple_health_export

"""

from typing import List
from pydantic import BaseModel
import os
from dotenv import load_dotenv

load_dotenv()


def _split_list(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    """Typed settings container.

    All downstream code should import `settings` from this module. Use
    these attributes (not os.getenv) so tests can monkeypatch `settings`.
    """

    chunk_size_bytes: int = int(os.getenv("CHUNK_SIZE_BYTES", str(8 * 1024 * 1024)))
    buffer_tail_chars: int = int(os.getenv("BUFFER_TAIL_CHARS", "300"))
    default_parse_mode: str = os.getenv("PARSE_MODE", "fast")
    workout_activity_types: List[str] = _split_list(
        os.getenv("WORKOUT_ACTIVITY_TYPES", "HKWorkoutActivityTypeRunning")
    )
    exports_dir: str = os.getenv("EXPORTS_DIR", ".")
    progress_queue_size: int = int(os.getenv("PROGRESS_QUEUE_SIZE", "64"))
    max_jobs: int = int(os.getenv("MAX_JOBS", "16"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
