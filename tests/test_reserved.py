"""Reserved CVE placeholder pages."""

from datetime import datetime, timezone

import pytest

from avd_generator.errors import RecordParseError
from avd_generator.sources.reserved import generate_reserved_pages, parse_cvelist_file


def cvelist_record(cve_id, state, text="** RESERVED ** This candidate has been reserved."):
    return {
        "data_type": "CVE",
        "CVE_data_meta": {"ID": cve_id, "ASSIGNER": "cve@mitre.org", "STATE": state},
        "description": {"description_data": [{"lang": "eng", "value": text}]},
    }


def fixed_clock():
    return datetime(2021, 5, 4, 12, 0, 0, tzinfo=timezone.utc)


def test_parse_strips_reserved_marker(tmp_path, dump_json):
    path = dump_json(tmp_path / "CVE-2021-1000.json", cvelist_record("CVE-2021-1000", "RESERVED"))
    record = parse_cvelist_file(path)
    assert record.reserved
    assert record.description == "This candidate has been reserved."


def test_only_new_reserved_ids_get_pages(tmp_path, dump_json):
    cvelist_dir = tmp_path / "cvelist"
    posts_dir = tmp_path / "content" / "nvd"
    dump_json(cvelist_dir / "2021" / "1xxx" / "CVE-2021-1000.json", cvelist_record("CVE-2021-1000", "RESERVED"))
    dump_json(cvelist_dir / "2021" / "1xxx" / "CVE-2021-1001.json", cvelist_record("CVE-2021-1001", "PUBLIC", "Bug."))
    dump_json(cvelist_dir / "2021" / "2xxx" / "CVE-2021-2000.json", cvelist_record("CVE-2021-2000", "RESERVED"))
    posts_dir.mkdir(parents=True)
    published = posts_dir / "CVE-2021-2000.md"
    published.write_text("published NVD page\n", encoding="utf-8")

    stats = generate_reserved_pages("2021", cvelist_dir, posts_dir, clock=fixed_clock)

    assert stats.written == 1
    assert published.read_text(encoding="utf-8") == "published NVD page\n"
    assert not (posts_dir / "CVE-2021-1001.md").exists()
    page = (posts_dir / "CVE-2021-1000.md").read_text(encoding="utf-8")
    assert 'title: "CVE-2021-1000"' in page
    assert "date: 2021-05-04 12:00:00 +0000" in page
    assert "marked as RESERVED" in page


def test_second_run_leaves_placeholder_date_alone(tmp_path, dump_json):
    cvelist_dir = tmp_path / "cvelist"
    posts_dir = tmp_path / "nvd"
    dump_json(cvelist_dir / "2022" / "CVE-2022-0001.json", cvelist_record("CVE-2022-0001", "RESERVED"))

    generate_reserved_pages("2022", cvelist_dir, posts_dir, clock=fixed_clock)
    first = (posts_dir / "CVE-2022-0001.md").read_bytes()
    stats = generate_reserved_pages(
        "2022", cvelist_dir, posts_dir, clock=lambda: datetime(2030, 1, 1, tzinfo=timezone.utc))

    assert stats.written == 0
    assert (posts_dir / "CVE-2022-0001.md").read_bytes() == first


def test_wrongly_typed_record_is_skipped(tmp_path, dump_json):
    cvelist_dir = tmp_path / "cvelist"
    posts_dir = tmp_path / "nvd"
    dump_json(cvelist_dir / "2021" / "CVE-2021-3000.json",
              {"CVE_data_meta": ["CVE-2021-3000", "RESERVED"], "description": {}})
    dump_json(cvelist_dir / "2021" / "CVE-2021-3001.json", cvelist_record("CVE-2021-3001", "RESERVED"))

    stats = generate_reserved_pages("2021", cvelist_dir, posts_dir, clock=fixed_clock)

    assert (stats.written, stats.skipped) == (1, 1)
    assert "CVE-2021-3000.json" in stats.errors[0]
    assert (posts_dir / "CVE-2021-3001.md").exists()


def test_wrongly_typed_description_raises_parse_error(tmp_path, dump_json):
    path = dump_json(tmp_path / "CVE-2021-3002.json",
                     {"CVE_data_meta": {"ID": "CVE-2021-3002"}, "description": {"description_data": [7]}})
    with pytest.raises(RecordParseError):
        parse_cvelist_file(path)
