"""
Tests for the island scanner: import graph traversal and island validation.
"""

import textwrap
from pathlib import Path

from islandgen.core.services.island_scanner import (
    has_island_directive,
    island_name,
    resolve_import,
    resolve_module,
    scan_islands,
)


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestDirective:
    def test_single_quotes(self, tmp_path: Path):
        assert has_island_directive(_write(tmp_path / "A.tsx", "'use island';\nexport default 1;\n"))

    def test_double_quotes_no_semicolon(self, tmp_path: Path):
        assert has_island_directive(_write(tmp_path / "A.tsx", '"use island"\n'))

    def test_leading_blank_lines_ignored(self, tmp_path: Path):
        assert has_island_directive(_write(tmp_path / "A.tsx", "\n\n  'use island';\n"))

    def test_must_be_first_statement(self, tmp_path: Path):
        path = _write(tmp_path / "A.tsx", "import React from 'react';\n'use island';\n")
        assert not has_island_directive(path)

    def test_mismatched_quotes(self, tmp_path: Path):
        assert not has_island_directive(_write(tmp_path / "A.tsx", "'use island\";\n"))

    def test_missing_file(self, tmp_path: Path):
        assert not has_island_directive(tmp_path / "nope.tsx")


class TestResolution:
    def test_extension_probing(self, tmp_path: Path):
        target = _write(tmp_path / "Card.jsx", "")
        assert resolve_module(tmp_path / "Card") == target

    def test_tsx_preferred(self, tmp_path: Path):
        tsx = _write(tmp_path / "Card.tsx", "")
        _write(tmp_path / "Card.js", "")
        assert resolve_module(tmp_path / "Card") == tsx

    def test_directory_index(self, tmp_path: Path):
        index = _write(tmp_path / "Card" / "index.ts", "")
        assert resolve_module(tmp_path / "Card") == index

    def test_non_script_never_resolves(self, tmp_path: Path):
        _write(tmp_path / "styles.css", "")
        assert resolve_module(tmp_path / "styles.css") is None

    def test_relative_and_rooted_imports(self, tmp_path: Path):
        src = tmp_path / "src"
        page = _write(src / "pages" / "Home.tsx", "")
        hero = _write(src / "sections" / "Hero.tsx", "")
        assert resolve_import("../sections/Hero", page, src) == hero.resolve()
        assert resolve_import("/sections/Hero", page, src) == hero.resolve()

    def test_package_imports_ignored(self, tmp_path: Path):
        page = _write(tmp_path / "Home.tsx", "")
        assert resolve_import("react", page, tmp_path) is None
        assert resolve_import("@scope/pkg", page, tmp_path) is None

    def test_island_name(self):
        assert island_name("components/Counter") == "Counter"
        assert island_name("Counter") == "Counter"


class TestScanIslands:
    def test_project_page(self, project: Path):
        islands, skipped = scan_islands(
            project / "src" / "pages" / "About.tsx", project / "src",
        )
        assert [i.import_path for i in islands] == ["components/Counter"]
        counter = islands[0]
        assert counter.name == "Counter"
        assert counter.file_path == (project / "src" / "components" / "Counter.tsx").resolve()

        reasons = {s.subject: s.reason for s in skipped}
        assert reasons == {
            "components/Missing": "could not resolve island component",
            "components/Static": "component missing 'use island' directive",
        }

    def test_page_without_islands(self, project: Path):
        islands, skipped = scan_islands(project / "src" / "pages" / "Home.tsx", project / "src")
        assert islands == []
        assert skipped == []

    def test_each_island_reported_once(self, tmp_path: Path):
        src = tmp_path / "src"
        _write(src / "ui" / "Like.tsx", "'use island';\nexport default () => null;\n")
        _write(src / "parts" / "A.tsx", '<Island component="ui/Like" />\n')
        _write(src / "parts" / "B.tsx", textwrap.dedent("""\
            import A from "./A";
            <Island component={"ui/Like"} props={{ n: 1 }} />
        """))
        page = _write(src / "Page.tsx", 'import A from "./parts/A";\nimport B from "./parts/B";\n')

        islands, skipped = scan_islands(page, src)
        assert [i.import_path for i in islands] == ["ui/Like"]
        assert skipped == []

    def test_import_cycle_terminates(self, tmp_path: Path):
        src = tmp_path / "src"
        _write(src / "A.tsx", 'import B from "./B";\n<Island component="Widget" />\n')
        _write(src / "B.tsx", 'import A from "./A";\n')
        _write(src / "Widget.tsx", "'use island';\n")

        islands, _ = scan_islands(src / "A.tsx", src)
        assert [i.name for i in islands] == ["Widget"]

    def test_package_modules_not_entered(self, tmp_path: Path):
        src = tmp_path / "src"
        pkg = _write(tmp_path / "node_modules" / "lib" / "index.tsx", '<Island component="Widget" />\n')
        assert pkg.is_file()
        page = _write(src / "Page.tsx", 'import lib from "lib";\n')
        _write(src / "Widget.tsx", "'use island';\n")

        islands, skipped = scan_islands(page, src)
        assert islands == []
        assert skipped == []

    def test_results_sorted_by_import_path(self, tmp_path: Path):
        src = tmp_path / "src"
        for name in ("zeta/Z", "alpha/A", "mid/M"):
            _write(src / f"{name}.tsx", "'use island';\n")
        page = _write(src / "Page.tsx", textwrap.dedent("""\
            <Island component="zeta/Z" />
            <Island component="alpha/A" />
            <Island component="mid/M" />
        """))
        islands, _ = scan_islands(page, src)
        assert [i.import_path for i in islands] == ["alpha/A", "mid/M", "zeta/Z"]
