"""Tests for the manifest reconciler."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from depsync.exceptions import ManifestError
from depsync.policy import PolicyTable
from depsync.reconciler import (
    plan,
    reconcile,
    reconcile_all,
    reconcile_compiler_config,
    remove_legacy_lint_config,
)
from tests.helpers import make_component, read_manifest


class TestPlan:
    def test_base_dependency_added(self):
        table = PolicyTable(base_dependencies={"lib-a": "1.0.0"})
        updated, diff = plan({"dependencies": {}, "devDependencies": {}}, table, set())

        assert updated["dependencies"] == {"lib-a": "1.0.0"}
        assert diff.as_dict()["added"] == [
            {"name": "lib-a", "version": "1.0.0", "type": "base", "section": "dependencies"}
        ]

    def test_input_not_mutated(self, policy: PolicyTable):
        manifest = {"dependencies": {"old-lib": "1.0.0"}}
        plan(manifest, policy, {"jquery"})
        assert manifest == {"dependencies": {"old-lib": "1.0.0"}}

    def test_base_dependency_updated(self):
        table = PolicyTable(base_dependencies={"lib-a": "2.0.0"})
        _, diff = plan({"dependencies": {"lib-a": "1.0.0"}}, table, set())
        assert diff.as_dict()["updated"] == [
            {"name": "lib-a", "from": "1.0.0", "to": "2.0.0", "section": "dependencies"}
        ]

    def test_used_conditional_added(self, policy: PolicyTable):
        updated, diff = plan({}, policy, {"jquery"})
        assert updated["dependencies"]["jquery"] == "^3.7.1"
        assert [c.name for c in diff.by_origin("conditional")] == ["jquery"]

    def test_unused_conditional_not_added(self, policy: PolicyTable):
        updated, _ = plan({}, policy, set())
        assert "jquery" not in updated["dependencies"]

    def test_declared_conditional_is_version_aligned(self, policy: PolicyTable):
        updated, diff = plan({"dependencies": {"jquery": "^2.0.0"}}, policy, set())
        assert updated["dependencies"]["jquery"] == "^3.7.1"
        assert diff.updated[0].previous == "^2.0.0"

    def test_dev_conditional_goes_to_dev_section(self, policy: PolicyTable):
        updated, diff = plan({}, policy, {"webpack"})
        assert updated["devDependencies"]["webpack"] == "^5.90.0"
        assert "webpack" not in updated["dependencies"]
        assert [c.name for c in diff.in_section("devDependencies")] == ["webpack", "typescript"]

    def test_dev_conditional_moved_out_of_runtime(self, policy: PolicyTable):
        updated, diff = plan({"dependencies": {"webpack": "^4.0.0"}}, policy, set())
        assert "webpack" not in updated["dependencies"]
        assert updated["devDependencies"]["webpack"] == "^5.90.0"
        assert diff.moved[0].name == "webpack"
        assert diff.moved[0].previous == "^4.0.0"

    def test_used_conditional_moved_out_of_dev(self, policy: PolicyTable):
        manifest = {"dependencies": {}, "devDependencies": {"jquery": "^3.0.0"}}
        updated, diff = plan(manifest, policy, {"jquery"})

        assert updated["dependencies"]["jquery"] == "^3.7.1"
        assert "jquery" not in updated["devDependencies"]
        assert diff.as_dict()["moved"] == [{"name": "jquery", "to": "dependencies"}]
        assert diff.moved[0].previous == "^3.0.0"

        _, again = plan(updated, policy, {"jquery"})
        assert again.is_empty

    def test_unused_conditional_left_in_dev(self, policy: PolicyTable):
        updated, diff = plan({"devDependencies": {"jquery": "^3.0.0"}}, policy, set())
        assert updated["devDependencies"]["jquery"] == "^3.0.0"
        assert not diff.moved

    def test_deprecated_removed_from_both_sections(self, policy: PolicyTable):
        manifest = {
            "dependencies": {"old-lib": "1.0.0"},
            "devDependencies": {"old-lib": "1.0.0"},
        }
        updated, diff = plan(manifest, policy, {"old-lib"})
        assert "old-lib" not in updated["dependencies"]
        assert "old-lib" not in updated["devDependencies"]
        assert {r.section for r in diff.removed_deprecated} == {"dependencies", "devDependencies"}

    def test_deprecated_never_added(self):
        table = PolicyTable(
            base_dependencies={"old-lib": "1.0.0"},
            conditional_dependencies={"older-lib": "1.0.0"},
            deprecated_dependencies=["old-lib", "older-lib"],
        )
        updated, diff = plan({}, table, {"older-lib"})
        assert "dependencies" not in updated
        assert diff.is_empty

    def test_no_empty_sections_created(self):
        updated, diff = plan({"name": "x"}, PolicyTable(), set())
        assert updated == {"name": "x"}
        assert diff.is_empty
        assert diff.summary() == "up to date"

    def test_scripts_and_engines_merged(self):
        table = PolicyTable(standard_scripts={"build": "gulp bundle"}, node_engines={"node": ">=18"})
        manifest = {"scripts": {"build": "tsc", "test": "jest"}}
        updated, diff = plan(manifest, table, set())
        assert updated["scripts"] == {"build": "gulp bundle", "test": "jest"}
        assert updated["engines"] == {"node": ">=18"}
        assert diff.scripts[0].previous == "tsc"
        assert diff.as_dict()["engines"] == {"node": ">=18"}

    def test_idempotent(self, policy: PolicyTable):
        manifest = {
            "dependencies": {"webpack": "^4.0.0", "old-lib": "1.0.0"},
            "devDependencies": {"typescript": "^4.0.0"},
        }
        once, first = plan(manifest, policy, {"jquery"})
        twice, second = plan(once, policy, {"jquery"})
        assert not first.is_empty
        assert second.is_empty
        assert twice == once

    def test_deterministic(self, policy: PolicyTable):
        manifest = {"dependencies": {"lodash": "^4.0.0"}, "devDependencies": {}}
        _, a = plan(manifest, policy, {"jquery", "webpack"})
        _, b = plan(manifest, policy, {"jquery", "webpack"})
        assert a.as_dict() == b.as_dict()


class TestReconcile:
    def test_scenario_base_dependency(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {"dependencies": {}, "devDependencies": {}})
        result = reconcile(component, PolicyTable(base_dependencies={"lib-a": "1.0.0"}), set())

        assert result.written
        assert read_manifest(component.abs_path)["dependencies"] == {"lib-a": "1.0.0"}

    def test_scenario_deprecated_dev_dependency(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {"devDependencies": {"old-lib": "1.0.0"}})
        result = reconcile(component, PolicyTable(deprecated_dependencies=["old-lib"]), set())

        assert read_manifest(component.abs_path)["devDependencies"] == {}
        assert result.diff.as_dict()["removed_deprecated"] == [
            {"name": "old-lib", "section": "devDependencies"}
        ]

    def test_unchanged_manifest_not_written(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {"dependencies": {"lib-a": "1.0.0"}})
        component.manifest_path.write_text('{"dependencies":{"lib-a":"1.0.0"}}')
        result = reconcile(component, PolicyTable(base_dependencies={"lib-a": "1.0.0"}), set())
        assert not result.written
        assert component.manifest_path.read_text() == '{"dependencies":{"lib-a":"1.0.0"}}'

    def test_dry_run_does_not_write(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {})
        result = reconcile(component, PolicyTable(base_dependencies={"lib-a": "1.0.0"}), set(), dry_run=True)
        assert not result.written
        assert not result.diff.is_empty
        assert read_manifest(component.abs_path) == {}

    def test_written_format(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {"name": "wéb"})
        reconcile(component, PolicyTable(base_dependencies={"lib-a": "1.0.0"}), set())
        text = component.manifest_path.read_text(encoding="utf-8")
        assert text.endswith("}\n")
        assert '  "name": "wéb"' in text

    def test_malformed_manifest(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {})
        component.manifest_path.write_text("{ nope")
        with pytest.raises(ManifestError):
            reconcile(component, PolicyTable(), set())


class TestCompilerConfig:
    def test_keys_overlaid(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {})
        ts = component.abs_path / "tsconfig.json"
        ts.write_text('{"compilerOptions": {"target": "es5"}, "include": ["src"]}')
        table = PolicyTable(standard_ts_config={"compilerOptions": {"target": "es2022"}, "include": ["src"]})

        assert reconcile_compiler_config(component, table) == ["compilerOptions"]
        assert json.loads(ts.read_text()) == {"compilerOptions": {"target": "es2022"}, "include": ["src"]}
        assert reconcile_compiler_config(component, table) == []

    def test_missing_tsconfig_is_left_alone(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {})
        table = PolicyTable(standard_ts_config={"compilerOptions": {}})
        assert reconcile_compiler_config(component, table) == []
        assert not (component.abs_path / "tsconfig.json").exists()

    def test_dry_run(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {})
        ts = component.abs_path / "tsconfig.json"
        ts.write_text("{}")
        table = PolicyTable(standard_ts_config={"extends": "./base.json"})
        assert reconcile_compiler_config(component, table, dry_run=True) == ["extends"]
        assert ts.read_text() == "{}"


class TestLegacyLintConfig:
    def test_removed(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {})
        (component.abs_path / "tslint.json").write_text("{}")
        assert remove_legacy_lint_config(component)
        assert not (component.abs_path / "tslint.json").exists()

    def test_absent(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {})
        assert not remove_legacy_lint_config(component)


class TestReconcileAll:
    def test_failure_is_isolated(self, tmp_path: Path, policy: PolicyTable):
        good = make_component(tmp_path, "good", {})
        bad = make_component(tmp_path, "bad", {})
        bad.manifest_path.write_text("not json")
        also_good = make_component(tmp_path, "also-good", {})
        (also_good.abs_path / "index.js").write_text('import $ from "jquery";')

        seen = []
        results, report = reconcile_all([good, bad, also_good], policy, on_result=seen.append)

        assert [r.component.path for r in results] == ["good", "also-good"]
        assert [r.component.path for r in seen] == ["good", "also-good"]
        assert report.summary_line() == "update: 2/3 succeeded"
        assert [o.component for o in report.failed] == ["bad"]
        assert "jquery" in read_manifest(also_good.abs_path)["dependencies"]
        assert "jquery" not in read_manifest(good.abs_path)["dependencies"]

    def test_lint_config_removed_unless_dry_run(self, tmp_path: Path):
        component = make_component(tmp_path, "web", {})
        lint = component.abs_path / "tslint.json"
        lint.write_text("{}")

        results, _ = reconcile_all([component], PolicyTable(), dry_run=True)
        assert lint.exists()
        assert not results[0].lint_config_removed

        results, _ = reconcile_all([component], PolicyTable())
        assert not lint.exists()
        assert results[0].lint_config_removed
