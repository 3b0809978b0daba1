"""
transform.py
------------
The one pattern every generator repeats:

    list files → parse → (enrich) → render → preserve-and-write

RecordTransformer runs it over one directory slice, sequentially. A bad file
never stops the slice: parse / render / write failures are logged and counted.
run_partitions fans several slices out over a bounded thread pool and hands
back one PartitionResult per slice, failures included.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from tqdm import tqdm

from avd_generator.errors import GeneratorError, RecordParseError, RenderError
from avd_generator.files import is_within
from avd_generator.pages import write_page

log = logging.getLogger(__name__)


@dataclass
class TransformStats:
    source:    str
    seen:      int = 0
    written:   int = 0
    preserved: int = 0
    skipped:   int = 0
    errors:    list[str] = field(default_factory=list)

    def merge(self, other: "TransformStats") -> "TransformStats":
        self.seen      += other.seen
        self.written   += other.written
        self.preserved += other.preserved
        self.skipped   += other.skipped
        self.errors.extend(other.errors)
        return self

    def summary(self) -> str:
        text = f"{self.written:,} written, {self.skipped:,} skipped"
        if self.preserved:
            text += f", {self.preserved:,} kept custom content"
        return text


@dataclass
class PartitionResult:
    name:  str
    stats: Optional[TransformStats] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RecordTransformer:
    """
    parse(path)            -> record                 (raises RecordParseError)
    enrich(record)         -> None                   (best effort, never raises)
    render(record)         -> str                    (raises RenderError)
    output_name(record)    -> file name, "<id>.md"
    should_write(record, output_path) -> bool        (optional filter)
    on_written(record, output_path)                  (optional, after a successful write)
    """
    name:         str
    parse:        Callable[[Path], Any]
    render:       Callable[[Any], str]
    output_name:  Callable[[Any], str]
    enrich:       Optional[Callable[[Any], None]] = None
    should_write: Optional[Callable[[Any, Path], bool]] = None
    on_written:   Optional[Callable[[Any, Path], None]] = None
    progress:     bool = False

    def run(self, paths: Iterable[Path], posts_dir: Path) -> TransformStats:
        stats = TransformStats(source=self.name)
        paths = list(paths)

        for path in tqdm(paths, desc=self.name, disable=not self.progress, leave=False):
            stats.seen += 1
            try:
                record = self.parse(path)
            except (RecordParseError, OSError, UnicodeDecodeError) as exc:
                self._skip(stats, f"unable to parse file: {path.name}, err: {exc}, skipping...")
                continue

            if self.enrich is not None:
                self.enrich(record)

            out_path = posts_dir / self.output_name(record)
            if not is_within(out_path, posts_dir):
                self._skip(stats, f"output path for {path.name} leaves {posts_dir}: {out_path}, skipping...")
                continue
            if self.should_write is not None and not self.should_write(record, out_path):
                continue

            try:
                page = self.render(record)
            except RenderError as exc:
                self._skip(stats, f"unable to render file: {path.name}, err: {exc}, skipping...")
                continue

            try:
                preserved = write_page(out_path, page)
            except (OSError, UnicodeDecodeError) as exc:
                self._skip(stats, f"unable to write file: {out_path} as markdown, err: {exc}, skipping...")
                continue

            stats.written += 1
            if preserved:
                stats.preserved += 1
            if self.on_written is not None:
                self.on_written(record, out_path)

        log.info(f"  {self.name}: {stats.summary()}")
        return stats

    @staticmethod
    def _skip(stats: TransformStats, message: str):
        log.warning(message)
        stats.skipped += 1
        stats.errors.append(message)


def run_partitions(
    partitions: dict[str, Callable[[], TransformStats]],
    workers: int = 4,
    progress: bool = False,
    desc: str = "partitions",
) -> list[PartitionResult]:
    """
    Run every partition job on a pool of at most `workers` threads.
    Blocks until all finish. Results come back in the order of `partitions`.
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")

    results: dict[str, PartitionResult] = {}
    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_name = {executor.submit(job): name for name, job in partitions.items()}

        for future in tqdm(as_completed(future_to_name), total=len(future_to_name),
                           desc=desc, disable=not progress):
            name = future_to_name[future]
            try:
                results[name] = PartitionResult(name=name, stats=future.result())
            except GeneratorError as exc:
                log.error(f"  partition {name} failed: {exc}")
                results[name] = PartitionResult(name=name, error=str(exc))
            except Exception as exc:
                log.exception(f"  partition {name} crashed")
                results[name] = PartitionResult(name=name, error=f"{type(exc).__name__}: {exc}")

    return [results[name] for name in partitions]
