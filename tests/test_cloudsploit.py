"""CloudSploit plugin pages."""

import pytest

from avd_generator.errors import RecordParseError
from avd_generator.menu import MenuRegistry
from avd_generator.pages import SENTINEL
from avd_generator.sources.cloudsploit import (
    generate_cloudsploit_pages,
    parse_cloudsploit_plugin_file,
    parse_plugin_metadata,
)

BUCKET_POLICY = """\
var async = require('async');
var helpers = require('../../../helpers/aws');

module.exports = {
    title: 'S3 Bucket All Users Policy',
    category: 'S3',
    domain: 'Storage',
    severity: 'High',
    description: 'Ensures S3 bucket policies do not allow global write, delete, or read permissions',
    more_info: 'S3 buckets can be configured to allow the global principal ' +
        'to access the bucket via the bucket policy. ' +
        "This policy should be restricted.",
    link: 'https://docs.aws.amazon.com/AmazonS3/latest/dev/using-iam-policies.html',
    recommended_action: 'Remove wildcard principals from the bucket\\'s policy statements.',
    apis: ['S3:listBuckets', 'S3:getBucketPolicy'],
    settings: {
        description: 'not the plugin description',
    },
    run: function(cache, settings, callback) {
        var title = 'not metadata';
    }
};
"""

REMEDIATION = """\
---
title: S3 Bucket All Users Policy
---
1. Log into the AWS console.
2. Remove the wildcard principal.
"""


@pytest.fixture
def plugin_dir(tmp_path):
    plugins = tmp_path / "cloudsploit-repo" / "plugins"
    (plugins / "aws" / "s3").mkdir(parents=True)
    (plugins / "aws" / "s3" / "bucketAllUsersPolicy.js").write_text(BUCKET_POLICY, encoding="utf-8")
    return plugins


def test_metadata_joins_concatenated_strings_and_stops_at_run():
    meta = parse_plugin_metadata(BUCKET_POLICY)
    assert meta["title"] == "S3 Bucket All Users Policy"
    assert meta["more_info"] == ("S3 buckets can be configured to allow the global principal "
                                 "to access the bucket via the bucket policy. This policy should be restricted.")
    assert meta["recommended_action"] == "Remove wildcard principals from the bucket's policy statements."
    assert meta["description"].startswith("Ensures S3 bucket policies")
    assert "apis" not in meta


def test_plugin_path_gives_provider_and_service(plugin_dir):
    plugin = parse_cloudsploit_plugin_file(plugin_dir / "aws" / "s3" / "bucketAllUsersPolicy.js", plugin_dir)
    assert (plugin.provider, plugin.service, plugin.plugin_id) == ("aws", "s3", "bucketAllUsersPolicy")
    assert plugin.relative_path == "aws/s3/bucketalluserspolicy.md"


def test_plugin_without_title_or_in_wrong_place_is_rejected(tmp_path):
    plugins = tmp_path / "plugins"
    (plugins / "aws" / "s3").mkdir(parents=True)
    untitled = plugins / "aws" / "s3" / "untitled.js"
    untitled.write_text("module.exports = {\n    severity: 'Low',\n};\n", encoding="utf-8")
    stray = plugins / "aws" / "stray.js"
    stray.write_text(BUCKET_POLICY, encoding="utf-8")

    with pytest.raises(RecordParseError):
        parse_cloudsploit_plugin_file(untitled, plugins)
    with pytest.raises(RecordParseError):
        parse_cloudsploit_plugin_file(stray, plugins)


def test_generate_pages_with_remediation_and_menu(tmp_path, plugin_dir):
    (plugin_dir / "aws" / "s3" / "bucketAllUsersPolicy.spec.js").write_text("describe()", encoding="utf-8")
    remediations = tmp_path / "remediations-repo" / "en"
    (remediations / "aws" / "s3").mkdir(parents=True)
    (remediations / "aws" / "s3" / "bucketAllUsersPolicy.md").write_text(REMEDIATION, encoding="utf-8")
    posts_dir = tmp_path / "content" / "misconfig"
    menu = MenuRegistry("misconfig", posts_dir)

    stats = generate_cloudsploit_pages(plugin_dir, posts_dir, remediations, misconfig_menu=menu)

    assert (stats.seen, stats.written, stats.skipped) == (1, 1, 0)
    assert set(menu.sections) == {("aws",), ("aws", "s3")}
    page = (posts_dir / "aws" / "s3" / "bucketalluserspolicy.md").read_text(encoding="utf-8")
    assert page.startswith('---\ntitle: "S3 Bucket All Users Policy"\nid: "bucketAllUsersPolicy"\n')
    assert 'severity: "high"\n' in page
    assert "| AWS | S3 | Storage | High |" in page
    assert "bucket's policy statements.\n\n1. Log into the AWS console.\n" in page
    assert "title: S3 Bucket All Users Policy\n---\n1." not in page
    assert "- https://docs.aws.amazon.com/AmazonS3/" in page
    assert page.endswith(f"{SENTINEL}\n")


def test_missing_remediation_leaves_recommended_action_alone(tmp_path, plugin_dir):
    posts_dir = tmp_path / "content" / "misconfig"

    generate_cloudsploit_pages(plugin_dir, posts_dir, tmp_path / "no-remediations")

    page = (posts_dir / "aws" / "s3" / "bucketalluserspolicy.md").read_text(encoding="utf-8")
    assert "bucket's policy statements.\n\n### Links\n" in page
