"""
Shared test fixtures: a throwaway TSX project and fake Node tools.

Node is never invoked. ``FakeNode`` stands in for ``tsx`` (writes the
render result the server entry would write), ``esbuild`` (emits
``{name}.js`` / ``{name}.css`` into --outdir) and the minifiers.
"""

from __future__ import annotations

import io
import json
import logging
import shutil
import textwrap
from pathlib import Path

import pytest
from PIL import Image

from islandgen.core.config import resolve_config
from islandgen.core.models.config import ResolvedBuildConfig
from islandgen.core.observability import logging_config
from islandgen.core.services.generator import BuildTools
from islandgen.core.services.node_tools import CommandResult

RUNTIME_FILE = Path(__file__).parent.parent / "islandgen" / "runtime" / "Island.tsx"


# ── Project tree ────────────────────────────────────────────────────


ABOUT_PAGE = textwrap.dedent("""\
    import React from "react";
    import Hero from "../sections/Hero";
    import "./about.css";

    export const ssgOptions: SsgOptions = {
      slug: "about",
      routeUrl: "/about",
      Head: () => <title>About</title>,
      context: async (children) => children,
    };

    export default function About() {
      return <main><Hero /></main>;
    }
""")

HOME_PAGE = textwrap.dedent("""\
    import React from "react";
    import { Link } from "react-router-dom";

    export const ssgOptions = {
      slug: "home",
    };

    export default function Home() {
      return <main><Link to="/about">About</Link></main>;
    }
""")

WIDGET = textwrap.dedent("""\
    export default function Widget() {
      return <div />;
    }
""")

HERO = textwrap.dedent("""\
    import React from "react";
    import { Island } from "/islandgen/Island";

    export default function Hero() {
      return (
        <section>
          <Island component="components/Counter" props={{ start: 3 }} />
          <Island component="components/Static" />
          <Island component="components/Missing" />
        </section>
      );
    }
""")

COUNTER = textwrap.dedent("""\
    'use island';
    import React, { useState } from "react";

    export default function Counter({ start }: { start: number }) {
      const [n, setN] = useState(start);
      return <button onClick={() => setN(n + 1)}>{n}</button>;
    }
""")

STATIC = textwrap.dedent("""\
    import React from "react";

    export default function Static() {
      return <p>static</p>;
    }
""")


def write_files(root: Path, files: dict[str, str]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def restore_package_logger(monkeypatch):
    """Keep logger levels set by one test out of the next."""
    monkeypatch.setattr(logging_config, "_pinned", False)
    package = logging.getLogger(logging_config.PACKAGE_LOGGER)
    level = package.level
    yield
    package.setLevel(level)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project with two pages, one non-page module and three islands refs."""
    root = tmp_path / "site"
    write_files(root, {
        "src/pages/About.tsx": ABOUT_PAGE,
        "src/pages/about.css": "h1 { color: red; }\n",
        "src/pages/Home.tsx": HOME_PAGE,
        "src/pages/Widget.tsx": WIDGET,
        "src/sections/Hero.tsx": HERO,
        "src/components/Counter.tsx": COUNTER,
        "src/components/Static.tsx": STATIC,
        "src/index.css": "body { margin: 0; }\n",
    })
    runtime = root / "src" / "islandgen" / "Island.tsx"
    runtime.parent.mkdir(parents=True)
    shutil.copyfile(RUNTIME_FILE, runtime)
    return root


@pytest.fixture
def config(project: Path) -> ResolvedBuildConfig:
    return resolve_config({}, root=project)


# ── Fake tools ──────────────────────────────────────────────────────


def make_image(width: int = 1200, height: int = 900, fmt: str = "PNG") -> bytes:
    img = Image.new("RGB", (width, height), (200, 40, 40))
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def _flags(cmd: list[str]) -> dict[str, str]:
    return dict(a.split("=", 1) for a in cmd if a.startswith("--") and "=" in a)


class FakeNode:
    """Command runner emulating tsx, esbuild, lightningcss and terser."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.entries: dict[str, str] = {}       # entry name → entry source
        self.requests: list[dict] = []          # SSR render requests
        self.server_entries: list[str] = []
        self.bodies: dict[str, str] = {}        # component stem → body markup
        self.events: list[dict] = []
        self.css: dict[str, str] = {}           # entry name → emitted CSS
        self.fail: set[str] = set()             # tool or entry names to fail

    def tools(self, fetch=None) -> BuildTools:
        return BuildTools(run=self, fetch=fetch or fake_fetch)

    def tool_calls(self, tool: str) -> list[list[str]]:
        return [c for c in self.calls if tool in c[:2]]

    def __call__(self, cmd: list[str], cwd: Path) -> CommandResult:
        self.calls.append(list(cmd))
        tool = cmd[1] if cmd[0] == "npx" else cmd[0]
        if tool in self.fail:
            return CommandResult(returncode=1, output=[f"{tool}: simulated failure"])
        if tool == "tsx":
            return self._tsx(cmd)
        if tool == "esbuild":
            return self._esbuild(cmd)
        return CommandResult(returncode=0)

    def _tsx(self, cmd: list[str]) -> CommandResult:
        self.server_entries.append(Path(cmd[-2]).read_text(encoding="utf-8"))
        request = json.loads(Path(cmd[-1]).read_text(encoding="utf-8"))
        self.requests.append(request)

        stem = Path(request["componentPath"]).stem
        if stem in self.fail:
            return CommandResult(returncode=1, output=["Error: render exploded"])

        body = self.bodies.get(stem, f"<h1>{stem}</h1>")
        for island in request["islands"]:
            body += (
                f'<div data-island="{island["name"]}" '
                f'data-island-component="{island["importPath"]}" '
                f'data-island-props="{{}}" style="display:contents"><button>3</button></div>'
            )
        result = {
            "bodyHtml": body,
            "headHtml": f"<title>{stem}</title>" if request["renderHead"] else "",
            "events": self.events,
        }
        Path(request["outputPath"]).write_text(json.dumps(result), encoding="utf-8")
        return CommandResult(returncode=0, output=["rendered"])

    def _esbuild(self, cmd: list[str]) -> CommandResult:
        flags = _flags(cmd)
        name = flags["--entry-names"]
        self.entries[name] = Path(cmd[2]).read_text(encoding="utf-8")
        if name in self.fail:
            return CommandResult(returncode=1, output=["✘ [ERROR] Could not resolve"])

        outdir = Path(flags["--outdir"])
        outdir.mkdir(parents=True, exist_ok=True)
        (outdir / f"{name}.js").write_text("export{};\n", encoding="utf-8")
        if not name.endswith("-hydrate"):
            css = self.css.get(name, "body{margin:0}h1{color:red}\n")
            if css:
                (outdir / f"{name}.css").write_text(css, encoding="utf-8")
        return CommandResult(returncode=0)


def fake_fetch(url: str, timeout: float) -> bytes:
    if "missing" in url:
        raise OSError(f"HTTP Error 404: Not Found ({url})")
    return make_image()


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()
