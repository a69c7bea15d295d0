"""Generate sample log documents for bulk loading."""

import logging
import random
import string
import tempfile
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

# Timestamps fall at most this far before "now".
MAX_AGE_MS = 6000 * 60 * 24 * 7


class Severity(str, Enum):
    LOW = "low"
    HIGH = "high"
    CRITICAL = "critical"


def _random_message(rng: random.Random) -> str:
    """Lower-case words of 1-8 letters, single spaces, 10-79 chars total."""
    length = 10 + rng.randrange(70)
    chars: List[str] = []
    while len(chars) < length:
        word_length = 1 + rng.randrange(8)
        for _ in range(min(word_length, length - len(chars))):
            chars.append(rng.choice(string.ascii_lowercase))
        if len(chars) < length - 1:
            chars.append(" ")
    return "".join(chars)


def generate_sample_document(rng: Optional[random.Random] = None,
                             now: Optional[datetime] = None) -> str:
    """Return one ``<log>`` document as an XML string."""
    rng = rng or random.Random()
    now = now or datetime.now()

    timestamp = now - timedelta(milliseconds=rng.randrange(MAX_AGE_MS))
    severity = rng.choice(list(Severity))
    source = f"192.168.{1 + rng.randrange(254)}.{1 + rng.randrange(254)}"
    message = _random_message(rng)

    return (
        "<?xml version='1.0'?>"
        f"<log tstamp='{timestamp.isoformat(timespec='seconds')}' severity='{severity.value}'>"
        f"<src>{source}</src>"
        f"<msg>{message}</msg>"
        "</log>"
    )


def write_sample_documents(directory: Union[str, Path], count: int = 10,
                           prefix: str = "sample",
                           rng: Optional[random.Random] = None) -> List[Path]:
    """Write ``count`` sample documents into an existing directory.

    File names are ``<prefix><random>.xml`` and never overwrite existing files.

    :returns: paths of the written files
    :raises FileNotFoundError: if ``directory`` does not exist
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Directory not found: {directory}")

    rng = rng or random.Random()
    paths = []
    for _ in range(count):
        with tempfile.NamedTemporaryFile(
            mode="w", encoding="utf-8", prefix=prefix, suffix=".xml",
            dir=directory, delete=False
        ) as f:
            f.write(generate_sample_document(rng))
            paths.append(Path(f.name))

    logger.info(f"Wrote {len(paths)} sample documents to {directory}")
    return paths
