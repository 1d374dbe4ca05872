"""
Tests for the page pipeline and the build plugin, end to end with fake Node tools.
"""

import json
import logging
from pathlib import Path

import pytest

from islandgen.core.config import resolve_config
from islandgen.core.models.config import HostingOptions, PluginOptions
from islandgen.core.services.errors import DiscoveryError, GenerationError, HostingError
from islandgen.core.services.generator import (
    PAGE_STAGES,
    generate_pages,
    generate_static,
    generate_static_with_info,
)
from islandgen.core.services.plugin import SsgPlugin

HERO_IMG = '<img src="https://cdn.example.com/hero.jpg" width="600" height="400" alt="">'


def _statuses(result) -> dict[str, str]:
    return {s.name: s.status for s in result.stages}


@pytest.fixture
def firebase(project: Path) -> Path:
    path = project / "firebase.json"
    path.write_text(json.dumps({
        "hosting": {
            "public": "dist",
            "rewrites": [{"source": "**", "destination": "/index.html"}],
        },
    }))
    return path


class TestGeneratePages:
    def test_all_pages(self, project: Path, config, node):
        results = generate_pages("src/pages", config, node.tools())

        assert [r.slug for r in results] == ["about", "home"]
        assert all(r.ok for r in results)
        about, home = results
        assert [s.name for s in about.stages] == [s.name for s in PAGE_STAGES]
        assert set(_statuses(about).values()) == {"done"}
        assert _statuses(home)["hydrate"] == "skipped"

        out = config.out_path
        assert sorted(p.name for p in out.iterdir() if p.is_file()) == [
            "about-hydrate.js", "about.css", "about.html", "home.css", "home.html",
        ]
        assert about.html_path == str(out / "about.html")

    def test_page_documents(self, project: Path, config, node):
        generate_pages("src/pages", config, node.tools())
        out = config.out_path

        about = (out / "about.html").read_text()
        assert "<title>About</title>" in about
        assert '<link rel="stylesheet" href="/static/about.css">' in about
        assert 'data-island="Counter"' in about
        assert 's.src = "/static/about-hydrate.js";' in about
        assert 'window.__SSR_ROUTE__ = "/about";' in about

        home = (out / "home.html").read_text()
        assert "<h1>Home</h1>" in home
        assert "__SSR_ROUTE__" not in home
        assert "<title>" not in home

    def test_dropped_islands_are_warnings(self, project: Path, config, node):
        about = generate_pages("src/pages/About.tsx", config, node.tools())[0]
        assert about.ok
        assert [w.subject for w in about.warnings] == ["components/Missing", "components/Static"]
        # only validated islands reach the renderer and the hydration entry
        assert [i["importPath"] for i in node.requests[0]["islands"]] == ["components/Counter"]
        assert "Static" not in node.entries["about-hydrate"]

    def test_images_localized_and_preloaded(self, project: Path, config, node):
        node.bodies["About"] = f"<h1>About</h1>{HERO_IMG}"
        result = generate_pages("src/pages/About.tsx", config, node.tools())[0]

        assert result.stages[2].detail["optimized"] == 1
        html = (config.out_path / "about.html").read_text()
        assert "cdn.example.com" not in html
        assert '<link rel="preload" as="image" href="/static/images/hero_' in html
        assert any(config.images_path.iterdir())

    def test_images_disabled(self, project: Path, node):
        config = resolve_config({"images": {"enabled": False}}, root=project)
        node.bodies["About"] = f"<h1>About</h1>{HERO_IMG}"
        result = generate_pages("src/pages/About.tsx", config, node.tools())[0]

        assert _statuses(result)["images"] == "skipped"
        assert "cdn.example.com" in (config.out_path / "about.html").read_text()

    def test_failure_isolated_to_page(self, project: Path, config, node):
        node.fail.add("About")
        about, home = generate_pages("src/pages", config, node.tools())

        assert not about.ok
        assert _statuses(about) == {
            "islands": "done",
            "render": "error",
            "images": "skipped",
            "css": "skipped",
            "hydrate": "skipped",
            "html": "skipped",
        }
        assert "render exploded" in about.failed_stage.error
        assert home.ok
        assert (config.out_path / "home.html").is_file()
        assert not (config.out_path / "about.html").exists()

    def test_bundle_failure(self, project: Path, config, node):
        node.fail.add("about-hydrate")
        about = generate_pages("src/pages/About.tsx", config, node.tools())[0]
        assert about.failed_stage.name == "hydrate"

    def test_duplicate_slug_warned(self, project: Path, config, node, caplog):
        (project / "src" / "pages" / "Zz.tsx").write_text(
            'export const ssgOptions = {\n  slug: "home",\n};\nexport default () => null;\n'
        )
        with caplog.at_level(logging.WARNING):
            results = generate_pages("src/pages", config, node.tools())
        assert [r.slug for r in results] == ["about", "home", "home"]
        assert "Duplicate slug 'home'" in caplog.text
        assert "<h1>Zz</h1>" in (config.out_path / "home.html").read_text()

    def test_result_dict(self, project: Path, config, node):
        result = generate_pages("src/pages/Home.tsx", config, node.tools())[0]
        data = result.to_dict()
        assert data["slug"] == "home"
        assert data["ok"] is True
        assert [s["name"] for s in data["stages"]] == [s.name for s in PAGE_STAGES]
        json.dumps(data)


class TestGenerateStatic:
    def test_with_info(self, project: Path, node):
        pages = generate_static_with_info(
            "src/pages", {"out_dir": "public/static"}, root=project, tools=node.tools(),
        )
        assert [p.to_dict() for p in pages] == [
            {"slug": "about", "route_url": "/about", "html_path": "about.html"},
            {"slug": "home", "route_url": "/", "html_path": "home.html"},
        ]
        assert (project / "public" / "static" / "home.html").is_file()

    def test_failures_raised_together(self, project: Path, node):
        node.fail.add("Home")
        with pytest.raises(GenerationError) as exc:
            generate_static("src/pages", root=project, tools=node.tools())
        assert str(exc.value).startswith("1 of 2 page(s) failed:")
        assert [r.slug for r in exc.value.failed] == ["home"]
        assert "SSR Render" in str(exc.value)

    def test_nothing_to_generate(self, project: Path, node):
        with pytest.raises(DiscoveryError):
            generate_static("src/components", root=project, tools=node.tools())

    def test_build_log_level_applied(self, project: Path, node, monkeypatch):
        monkeypatch.delenv("ISLANDGEN_LOG_LEVEL", raising=False)
        generate_static("src/pages", {"log_level": "silent"}, root=project, tools=node.tools())
        assert logging.getLogger("islandgen").level == logging.CRITICAL


class TestSsgPlugin:
    def _plugin(self, project: Path, node, **options) -> SsgPlugin:
        options.setdefault("pages", ["src/pages"])
        return SsgPlugin(PluginOptions(**options), project, tools=node.tools())

    def test_build_syncs_hosting(self, project: Path, node, firebase: Path):
        plugin = self._plugin(project, node, hosting=HostingOptions(firebase_json="firebase.json"))
        plugin.config_resolved("build")
        pages = plugin.write_bundle()

        assert [p.slug for p in pages] == ["about", "home"]
        rewrites = json.loads(firebase.read_text())["hosting"]["rewrites"]
        assert rewrites == [
            {"source": "/about", "destination": "/static/about.html"},
            {"source": "/", "destination": "/static/home.html"},
            {"source": "**", "destination": "/index.html"},
        ]

    def test_runs_once(self, project: Path, node):
        plugin = self._plugin(project, node)
        plugin.config_resolved("build")
        plugin.write_bundle()
        calls = len(node.calls)

        assert plugin.write_bundle() == []
        assert len(node.calls) == calls

    def test_serve_skips_generation(self, project: Path, node):
        plugin = self._plugin(project, node)
        plugin.config_resolved("serve")
        assert plugin.write_bundle() == []
        assert node.calls == []

    def test_run_in_dev(self, project: Path, node):
        plugin = self._plugin(project, node, run_in_dev=True)
        plugin.config_resolved("serve")
        assert len(plugin.write_bundle()) == 2

    def test_multiple_inputs(self, project: Path, node):
        plugin = self._plugin(project, node, pages=["src/pages/Home.tsx", "src/pages/About.tsx"])
        assert [p.slug for p in plugin.write_bundle()] == ["home", "about"]

    def test_no_inputs(self, project: Path, node, caplog):
        plugin = self._plugin(project, node, pages=[])
        with caplog.at_level(logging.WARNING):
            assert plugin.write_bundle() == []
        assert "No page inputs" in caplog.text

    def test_failure_leaves_hosting_untouched(self, project: Path, node, firebase: Path):
        before = firebase.read_text()
        node.fail.add("About")
        plugin = self._plugin(project, node, hosting=HostingOptions(firebase_json="firebase.json"))

        with pytest.raises(GenerationError):
            plugin.write_bundle()
        assert firebase.read_text() == before
        assert [r.ok for r in plugin.results] == [False, True]

    def test_build_config_from_options(self, project: Path, node):
        plugin = self._plugin(project, node, build={"out_dir": "public/ssg", "base_url": "/ssg/"})
        plugin.write_bundle()
        assert plugin.config.base_url == "/ssg"
        assert (project / "public" / "ssg" / "about.html").is_file()

    def test_build_log_level_applied(self, project: Path, node, monkeypatch):
        monkeypatch.delenv("ISLANDGEN_LOG_LEVEL", raising=False)
        plugin = self._plugin(project, node, build={"log_level": "error"})
        plugin.write_bundle()
        assert logging.getLogger("islandgen").level == logging.ERROR

    def test_sync_existing(self, project: Path, node, firebase: Path):
        plugin = self._plugin(project, node, hosting=HostingOptions(firebase_json="firebase.json"))
        out = plugin.config.out_path
        out.mkdir(parents=True)
        (out / "home.html").write_text("<html></html>")

        pages = plugin.sync_existing()
        assert [p.slug for p in pages] == ["home"]
        assert node.calls == []
        sources = [r["source"] for r in json.loads(firebase.read_text())["hosting"]["rewrites"]]
        assert sources == ["/", "**"]

    def test_sync_existing_without_hosting(self, project: Path, node):
        with pytest.raises(HostingError, match="No hosting platform"):
            self._plugin(project, node).sync_existing()
