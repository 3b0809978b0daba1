"""RecordTransformer and the bounded partition pool."""

import threading
import time

import pytest

from avd_generator.errors import RecordParseError, RenderError, SourceListingError
from avd_generator.transform import RecordTransformer, TransformStats, run_partitions


def text_transformer(**overrides):
    def parse(path):
        text = path.read_text(encoding="utf-8")
        if text.startswith("!"):
            raise RecordParseError(path, "bang")
        return text.strip()

    def render(record):
        if record == "unrenderable":
            raise RenderError("no template for that")
        return f"# {record}\n"

    options = dict(name="text", parse=parse, render=render, output_name=lambda r: f"{r}.md")
    options.update(overrides)
    return RecordTransformer(**options)


@pytest.fixture
def inputs(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    for name, text in [("a.txt", "alpha"), ("b.txt", "!broken"), ("c.txt", "unrenderable"), ("d.txt", "delta")]:
        (src / name).write_text(text, encoding="utf-8")
    return sorted(src.iterdir())


def test_bad_records_are_counted_not_raised(tmp_path, inputs):
    posts = tmp_path / "posts"
    stats = text_transformer().run(inputs, posts)

    assert (stats.seen, stats.written, stats.skipped) == (4, 2, 2)
    assert stats.errors[0].startswith("unable to parse file: b.txt")
    assert stats.errors[1].startswith("unable to render file: c.txt")
    assert (posts / "alpha.md").read_text(encoding="utf-8") == "# alpha\n"
    assert not (posts / "unrenderable.md").exists()


def test_filter_and_hooks(tmp_path, inputs):
    enriched, written = [], []
    transformer = text_transformer(
        enrich       = enriched.append,
        should_write = lambda record, out_path: record != "delta",
        on_written   = lambda record, out_path: written.append(out_path.name),
    )
    stats = transformer.run(inputs, tmp_path / "posts")

    assert enriched == ["alpha", "unrenderable", "delta"]
    assert written == ["alpha.md"]
    assert stats.written == 1


def test_stats_merge_and_summary():
    total = TransformStats("all", seen=2, written=2)
    total.merge(TransformStats("x", seen=3, written=1, preserved=1, skipped=2, errors=["e"]))
    assert (total.seen, total.written, total.preserved, total.skipped) == (5, 3, 1, 2)
    assert total.summary() == "3 written, 2 skipped, 1 kept custom content"


def test_partitions_keep_input_order_and_capture_failures():
    def job(name, delay):
        def run():
            time.sleep(delay)
            return TransformStats(name, written=1)
        return run

    def failing():
        raise SourceListingError("/nowhere/2020", "No such file or directory")

    results = run_partitions(
        {"2019": job("2019", 0.05), "2020": failing, "2021": job("2021", 0.0)}, workers=3)

    assert [r.name for r in results] == ["2019", "2020", "2021"]
    assert results[0].stats.written == 1
    assert not results[1].ok and "/nowhere/2020" in results[1].error
    assert results[2].ok


def test_partition_pool_is_bounded():
    lock, active, peak = threading.Lock(), [0], [0]

    def job():
        with lock:
            active[0] += 1
            peak[0] = max(peak[0], active[0])
        time.sleep(0.02)
        with lock:
            active[0] -= 1
        return TransformStats("job")

    results = run_partitions({str(i): job for i in range(8)}, workers=2)

    assert all(r.ok for r in results)
    assert peak[0] <= 2


def test_partition_pool_rejects_zero_workers():
    with pytest.raises(ValueError):
        run_partitions({}, workers=0)


def test_output_outside_posts_dir_is_skipped(tmp_path, inputs):
    posts = tmp_path / "site" / "posts"
    transformer = text_transformer(output_name=lambda r: f"../../{r}.md" if r == "alpha" else f"{r}.md")

    stats = transformer.run(inputs, posts)

    assert (stats.written, stats.skipped) == (1, 3)
    assert any("leaves" in e and "a.txt" in e for e in stats.errors)
    assert not (tmp_path / "alpha.md").exists()
    assert (posts / "delta.md").exists()


def test_partition_crash_becomes_a_failed_result():
    def crashing():
        return {}["missing"]

    results = run_partitions({"2019": crashing, "2020": lambda: TransformStats("2020", written=1)}, workers=2)

    assert not results[0].ok
    assert results[0].error.startswith("KeyError")
    assert results[1].ok and results[1].stats.written == 1
