"""
On-disk staging of diagnostic fragments.

Each chunk gets one fragment file per diagnostic category, named
<fingerprint>_<category><chunk id>.txt. The fingerprint is a digest of the
input catalog, so fragments left behind by a crashed run against a
different file can never be mistaken for this run's output, and chunk ids
keep concurrent writers apart.

A flushed chunk keeps only its counts; the detail lives in its fragments
until the assessment reads it back.
"""

import csv
import hashlib
import json
import logging
from collections.abc import Iterable
from pathlib import Path

from aces_inspector.exceptions import CatalogError, StagingError
from aces_inspector.schemas.analysis import AnalysisChunk, AnalysisResults, Diagnostic, DiagnosticCategory
from aces_inspector.schemas.catalog import App

logger = logging.getLogger(__name__)

FRAGMENTS_DIRNAME = "fragments"


def file_fingerprint(path: str | Path) -> str:
    """Uppercase hex MD5 of a file's bytes."""
    md5 = hashlib.md5()
    try:
        with open(path, "rb") as f:
            for block in iter(lambda: f.read(1 << 20), b""):
                md5.update(block)
    except OSError as e:
        raise CatalogError(f"error opening input file: {e}") from e
    return md5.hexdigest().upper()


def apps_fingerprint(apps: Iterable[App]) -> str:
    """Fingerprint for record sets built in memory rather than read from a file."""
    md5 = hashlib.md5()
    for app in apps:
        md5.update(json.dumps(app.model_dump(mode="json"), sort_keys=True).encode("utf-8"))
        md5.update(b"\n")
    return md5.hexdigest().upper()


class FragmentStore:
    """Allocates, writes, reads and removes per-chunk diagnostic fragments."""

    def __init__(self, root: str | Path, fingerprint: str):
        self.directory = Path(root) / FRAGMENTS_DIRNAME
        self.fingerprint = fingerprint
        self._allocated: list[Path] = []

    def prepare(self) -> None:
        """Create the fragments directory and prove it is writable."""
        if not self.directory.parent.is_dir():
            raise StagingError(f"temp directory ({self.directory.parent}) does not exist")
        try:
            self.directory.mkdir(exist_ok=True)
            writable_check = self.directory / f"{self.fingerprint}.check"
            writable_check.write_text("", encoding="utf-8")
            writable_check.unlink()
        except OSError as e:
            raise StagingError(f"failed to create {FRAGMENTS_DIRNAME} directory inside temp folder: {e}") from e

    def path_for(self, category: DiagnosticCategory, chunk_id: int | None = None) -> Path:
        suffix = "" if chunk_id is None else str(chunk_id)
        return self.directory / f"{self.fingerprint}_{category.value}{suffix}.txt"

    def allocate(
        self, chunk: AnalysisChunk, categories: Iterable[DiagnosticCategory], numbered: bool = True
    ) -> None:
        """Assign the chunk its fragment destinations. Call before the parallel phase."""
        for category in categories:
            path = self.path_for(category, chunk.id if numbered else None)
            chunk.fragments[category] = path
            self._allocated.append(path)

    @staticmethod
    def flush(chunk: AnalysisChunk) -> None:
        """
        Write the chunk's diagnostics to its own fragments (owning worker
        only) and release them from memory. Counts stay on the chunk.
        """
        for category, path in chunk.fragments.items():
            diagnostics = chunk.diagnostics.get(category)
            if not diagnostics:
                continue
            try:
                with open(path, "w", newline="", encoding="utf-8") as f:
                    writer = csv.writer(f, delimiter="\t", quoting=csv.QUOTE_NONE, escapechar="\\")
                    for diagnostic in diagnostics:
                        writer.writerow(diagnostic.to_row())
            except OSError as e:
                raise StagingError(f"failed to stage {category.value} for chunk {chunk.id}: {e}") from e
            del chunk.diagnostics[category]
            chunk.staged.append(category)

    def read(self, category: DiagnosticCategory, chunk_id: int | None = None) -> list[Diagnostic]:
        return read_fragment(category, self.path_for(category, chunk_id))

    def cleanup(self) -> int:
        """Delete every fragment allocated by this store. Returns the number removed."""
        removed = 0
        for path in self._allocated:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to delete fragment {path}: {e}")
        self._allocated.clear()
        logger.info(f"Deleted {removed} staged fragments")
        return removed


def read_fragment(category: DiagnosticCategory, path: Path) -> list[Diagnostic]:
    if not path.exists():
        return []
    try:
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.reader(f, delimiter="\t", quoting=csv.QUOTE_NONE, escapechar="\\")
            return [Diagnostic.from_row(category, row) for row in reader]
    except OSError as e:
        raise StagingError(f"failed to read staged fragment {path.name}: {e}") from e


def collect_diagnostics(results: AnalysisResults, category: DiagnosticCategory) -> list[Diagnostic]:
    """Every diagnostic of a category: those still in memory, then the staged ones in chunk order."""
    collected = list(results.diagnostics.get(category, []))
    for path in results.fragments.get(category, []):
        collected.extend(read_fragment(category, path))
    return collected
