import json
import logging
from pathlib import Path

from scraping.schemas import Transcript

logger = logging.getLogger(__name__)


def next_numbered_path(directory: Path, stem: str, suffix: str) -> Path:
    """Return ``directory/<stem>_<i><suffix>`` for the first unused i, starting at 1."""
    directory.mkdir(parents=True, exist_ok=True)
    i = 1
    while True:
        candidate = directory / f"{stem}_{i}{suffix}"
        if not candidate.exists():
            return candidate
        i += 1


def dump_transcript(transcript: Transcript, dump_dir: Path) -> Path:
    """
    Write a transcript to a numbered JSON file for offline debugging.
    Returns the path written.
    """
    output_file = next_numbered_path(Path(dump_dir), "transcript", ".json")
    payload = transcript.model_dump(mode="json")
    output_file.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Transcript with %s events written to %s", len(transcript), output_file)
    return output_file
