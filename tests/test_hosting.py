"""
Tests for hosting configuration: firebase.json rewrite management.
"""

import json
from pathlib import Path

import pytest

from islandgen.core.config.resolver import resolve_config
from islandgen.core.models.config import HostingOptions
from islandgen.core.models.pages import GeneratedPageInfo, HostingRewriteRule
from islandgen.core.services.errors import HostingError
from islandgen.core.services.hosting import FirebaseConfigurator, get_configurator, rewrite_rules
from islandgen.core.services.hosting.firebase import is_managed_rewrite, merge_rewrites

PAGES = [
    GeneratedPageInfo(slug="home", route_url="/", html_path="home.html"),
    GeneratedPageInfo(slug="about", route_url="/about", html_path="about.html"),
]


def _write_firebase(path: Path, hosting) -> Path:
    path.write_text(json.dumps({"hosting": hosting}, indent=2))
    return path


class TestRewriteRules:
    def test_one_rule_per_page(self):
        assert [r.to_dict() for r in rewrite_rules(PAGES, "/static")] == [
            {"source": "/", "destination": "/static/home.html"},
            {"source": "/about", "destination": "/static/about.html"},
        ]

    def test_managed_rule_detection(self):
        assert is_managed_rewrite({"source": "/x", "destination": "/static/x.html"}, "/static")
        assert not is_managed_rewrite({"source": "**", "destination": "/index.html"}, "/static")
        assert not is_managed_rewrite({"source": "/api", "function": "api"}, "/static")
        assert not is_managed_rewrite({"source": "/x", "destination": "/static/x.js"}, "/static")

    def test_glob_sources_never_managed(self):
        assert not is_managed_rewrite({"source": "**", "destination": "/static/index.html"}, "/static")
        assert not is_managed_rewrite({"source": "/docs/**", "destination": "/static/docs.html"}, "/static")

    def test_root_base_only_claims_known_destinations(self):
        assert is_managed_rewrite({"source": "/", "destination": "/home.html"}, "", {"/home.html"})
        assert not is_managed_rewrite({"source": "/", "destination": "/index.html"}, "", {"/home.html"})
        assert not is_managed_rewrite({"source": "/", "destination": "/home.html"}, "")


class TestMergeRewrites:
    def test_inserted_before_catch_all(self):
        existing = [
            {"source": "/api/**", "function": "api"},
            {"source": "**", "destination": "/index.html"},
        ]
        merged = merge_rewrites(existing, rewrite_rules(PAGES, "/static"), "/static")
        assert [r["source"] for r in merged] == ["/api/**", "/", "/about", "**"]

    def test_prepended_without_catch_all(self):
        existing = [{"source": "/api/**", "function": "api"}]
        merged = merge_rewrites(existing, rewrite_rules(PAGES[:1], "/static"), "/static")
        assert [r["source"] for r in merged] == ["/", "/api/**"]

    def test_stale_managed_rules_replaced(self):
        existing = [
            {"source": "/old", "destination": "/static/old.html"},
            {"source": "/**", "destination": "/index.html"},
        ]
        merged = merge_rewrites(existing, [HostingRewriteRule("/", "/static/home.html")], "/static")
        assert merged == [
            {"source": "/", "destination": "/static/home.html"},
            {"source": "/**", "destination": "/index.html"},
        ]

    def test_idempotent(self):
        rules = rewrite_rules(PAGES, "/static")
        once = merge_rewrites([{"source": "**", "destination": "/index.html"}], rules, "/static")
        assert merge_rewrites(once, rules, "/static") == once


class TestFirebaseConfigurator:
    def test_configure(self, tmp_path: Path):
        path = _write_firebase(tmp_path / "firebase.json", {
            "public": "dist",
            "rewrites": [{"source": "**", "destination": "/index.html"}],
        })
        rules = FirebaseConfigurator(path).configure(PAGES, "/static")

        assert len(rules) == 2
        data = json.loads(path.read_text())
        assert data["hosting"]["public"] == "dist"
        assert data["hosting"]["rewrites"] == [
            {"source": "/", "destination": "/static/home.html"},
            {"source": "/about", "destination": "/static/about.html"},
            {"source": "**", "destination": "/index.html"},
        ]
        assert path.read_text().endswith("}\n")

    def test_creates_rewrites_array(self, tmp_path: Path):
        path = _write_firebase(tmp_path / "firebase.json", {"public": "dist"})
        FirebaseConfigurator(path).configure(PAGES[:1], "/static")
        assert json.loads(path.read_text())["hosting"]["rewrites"] == [
            {"source": "/", "destination": "/static/home.html"},
        ]

    def test_multi_site_uses_first_entry(self, tmp_path: Path):
        path = _write_firebase(tmp_path / "firebase.json", [
            {"target": "app", "public": "dist"},
            {"target": "docs", "public": "docs"},
        ])
        FirebaseConfigurator(path).configure(PAGES[:1], "/static")
        hosting = json.loads(path.read_text())["hosting"]
        assert "rewrites" in hosting[0]
        assert "rewrites" not in hosting[1]

    def test_non_ascii_preserved(self, tmp_path: Path):
        path = _write_firebase(tmp_path / "firebase.json", {"headers": [{"source": "/café"}]})
        FirebaseConfigurator(path).configure(PAGES[:1], "/static")
        assert "/café" in path.read_text(encoding="utf-8")

    def test_root_base_keeps_hand_written_rules(self, tmp_path: Path):
        path = _write_firebase(tmp_path / "firebase.json", {
            "rewrites": [
                {"source": "/legacy", "destination": "/legacy.html"},
                {"source": "**", "destination": "/index.html"},
            ],
        })
        configurator = FirebaseConfigurator(path)
        configurator.configure(PAGES[:1], resolve_config({"base_url": "/"}).base_url)
        configurator.configure(PAGES[:1], "")

        assert json.loads(path.read_text())["hosting"]["rewrites"] == [
            {"source": "/legacy", "destination": "/legacy.html"},
            {"source": "/", "destination": "/home.html"},
            {"source": "**", "destination": "/index.html"},
        ]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(HostingError, match="not found"):
            FirebaseConfigurator(tmp_path / "firebase.json").configure(PAGES, "/static")

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "firebase.json"
        path.write_text("{ nope")
        with pytest.raises(HostingError, match="Invalid JSON"):
            FirebaseConfigurator(path).configure(PAGES, "/static")

    def test_no_hosting_section(self, tmp_path: Path):
        path = tmp_path / "firebase.json"
        path.write_text('{"functions": {}}')
        with pytest.raises(HostingError, match="No hosting configuration"):
            FirebaseConfigurator(path).configure(PAGES, "/static")


class TestGetConfigurator:
    def test_unset(self, tmp_path: Path):
        assert get_configurator(HostingOptions(), tmp_path) is None

    def test_relative_path(self, tmp_path: Path):
        configurator = get_configurator(HostingOptions(firebase_json="firebase.json"), tmp_path)
        assert isinstance(configurator, FirebaseConfigurator)
        assert configurator.path == tmp_path / "firebase.json"
