"""
Unit tests for the per-format config rewriters
"""

import json

import pytest

from servermigrate.core.exceptions.migration_exceptions import ReconcileFailure
from servermigrate.services.reconciliation.bindings import (
    build_default_bindings,
    logrotate_template,
    rsyslog_template,
)
from servermigrate.services.reconciliation.rewriters import _TokenRewriter, get_rewriter, rebase_path
from tests.conftest import make_service_config

PREVIOUS = ["/server-data", "/srv"]


@pytest.fixture
def by_id(tmp_path):
    return {b.service_id: b for b in build_default_bindings(make_service_config(tmp_path))}


def rewrite(binding, text, target="/data", previous=PREVIOUS):
    return get_rewriter(binding.config_format).rewrite(text, binding, target, previous)


class TestRebasePath:

    def test_moves_paths_under_previous_base(self):
        assert rebase_path("/srv/logs/app", "/data", PREVIOUS) == "/data/logs/app"
        assert rebase_path("/srv", "/data", PREVIOUS) == "/data"

    def test_ignores_lookalike_prefixes(self):
        assert rebase_path("/srv2/logs", "/data", PREVIOUS) is None
        assert rebase_path("/var/log/syslog", "/data", PREVIOUS) is None

    def test_longest_previous_base_wins(self):
        assert rebase_path("/mnt/a/b/logs", "/data", ["/mnt/a", "/mnt/a/b"]) == "/data/logs"

    def test_target_is_never_a_previous_base(self):
        assert rebase_path("/data/logs", "/data", ["/data"]) is None

    def test_paths_under_nested_target_are_left_alone(self):
        assert rebase_path("/srv/migrated/logs/app", "/srv/migrated", ["/srv"]) is None
        assert rebase_path("/srv/migrated", "/srv/migrated", ["/srv"]) is None
        assert rebase_path("/srv/logs/app", "/srv/migrated", ["/srv"]) == "/srv/migrated/logs/app"

    def test_rewrite_into_nested_target_is_stable(self, by_id):
        binding = by_id["rsyslog"]
        first, _ = rewrite(binding, rsyslog_template("/srv"), target="/srv/migrated", previous=["/srv"])
        second, changed = rewrite(binding, first, target="/srv/migrated", previous=["/srv"])

        assert first == rsyslog_template("/srv/migrated")
        assert second == first
        assert changed == []


class TestJsonRewriter:

    def test_sets_owned_field_and_keeps_others(self, by_id):
        text = json.dumps({"data-root": "/server-data/docker", "log-driver": "json-file"})
        new_text, changed = rewrite(by_id["docker"], text)

        assert changed == ["data-root"]
        assert json.loads(new_text) == {"data-root": "/data/docker", "log-driver": "json-file"}

    def test_owned_field_is_set_from_any_location(self, by_id):
        new_text, _ = rewrite(by_id["docker"], '{"data-root": "/var/lib/docker"}')
        assert json.loads(new_text)["data-root"] == "/data/docker"

    def test_already_correct_is_returned_verbatim(self, by_id):
        text = '{ "data-root" : "/data/docker" }'
        assert rewrite(by_id["docker"], text) == (text, [])

    @pytest.mark.parametrize("text", ["{not json", "[1, 2]", '{"data-root": 5}'])
    def test_bad_documents_fail(self, by_id, text):
        with pytest.raises(ReconcileFailure):
            rewrite(by_id["docker"], text)


class TestIniRewriter:

    def test_rewrites_existing_keys_in_place(self, by_id):
        text = "; npm settings\nprefix = /srv/apps/node_modules\nregistry=https://registry.npmjs.org/\ncache=/tmp/npm\n"
        new_text, changed = rewrite(by_id["npm"], text)

        assert changed == ["prefix", "cache"]
        assert new_text == (
            "; npm settings\n"
            "prefix = /data/apps/node_modules\n"
            "registry=https://registry.npmjs.org/\n"
            "cache=/data/data/cache/npm\n"
        )

    def test_appends_missing_keys(self, by_id):
        new_text, changed = rewrite(by_id["npm"], "registry=https://example.org/")

        assert changed == ["prefix", "cache"]
        assert new_text.splitlines() == [
            "registry=https://example.org/",
            "prefix=/data/apps/node_modules",
            "cache=/data/data/cache/npm",
        ]

    def test_extract(self, by_id):
        values = get_rewriter(by_id["npm"].config_format).extract("cache=/c\nprefix=/p\n", by_id["npm"])
        assert values == ["/p", "/c"]


class TestRsyslogRewriter:

    def test_rebases_action_paths_only(self, by_id):
        text = rsyslog_template("/srv") + "mail.*   -/srv/logs/mail.log\nkern.*   /var/log/kern.log\n"
        new_text, changed = rewrite(by_id["rsyslog"], text)

        assert changed == ["action"]
        assert new_text == rsyslog_template("/data") + "mail.*   -/data/logs/mail.log\nkern.*   /var/log/kern.log\n"

    def test_comments_untouched(self, by_id):
        text = "# old base was /srv/logs\n"
        assert rewrite(by_id["rsyslog"], text) == (text, [])


class TestLogrotateRewriter:

    def test_rebases_headers_not_scripts(self, by_id):
        text = logrotate_template("/server-data").replace(
            "/usr/lib/rsyslog/rsyslog-rotate", "/server-data/scripts/rotate.sh"
        )
        new_text, changed = rewrite(by_id["logrotate"], text)

        assert changed == ["path"]
        assert "/data/logs/system/*.log\n" in new_text
        assert "/data/logs/app/*.log {\n" in new_text
        assert "/server-data/scripts/rotate.sh" in new_text

    def test_extract_lists_header_paths(self, by_id):
        binding = by_id["logrotate"]
        values = get_rewriter(binding.config_format).extract(logrotate_template("/srv"), binding)
        assert values == ["/srv/logs/system/*.log", "/srv/logs/security/*.log", "/srv/logs/app/*.log"]

    def test_template_round_trip_is_stable(self, by_id):
        text = logrotate_template("/data")
        assert rewrite(by_id["logrotate"], text) == (text, [])


def test_token_rewriter_requires_line_selection():
    with pytest.raises(TypeError):
        _TokenRewriter()
