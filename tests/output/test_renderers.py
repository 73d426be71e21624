"""Tests for operation-specific Rich renderers."""

from todoctl.output.renderers import render_quiet, render_result
from todoctl.services.result import ServiceError, ServiceResult

# ── Helpers ───────────────────────────────────────────────────────────


def _ok(op: str, **data: object) -> ServiceResult:
    return ServiceResult(ok=True, op=op, data=dict(data))


def _err(op: str, code: str, message: str, **detail: object) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(code=code, message=message, detail=dict(detail)),
    )


PLUGINS = [
    {
        "name": "pomodoro",
        "source": "pomodoro@todoctl-official",
        "version": "2.1.0",
        "enabled": True,
        "marketplace": "todoctl-official",
        "after": None,
    },
    {
        "name": "jira-sync",
        "source": "jira-sync@acme",
        "version": "0.3.0",
        "enabled": False,
        "marketplace": "acme",
        "after": "pomodoro",
    },
]


# ── Errors ───────────────────────────────────────────────────────────


class TestErrorRenderer:
    def test_basic_error(self) -> None:
        output = render_result(_err("plugin_install", "NOT_FOUND", "Plugin 'x' not found."))
        assert "ERROR" in output
        assert "plugin_install" in output
        assert "Plugin 'x' not found." in output

    def test_verbose_shows_detail(self) -> None:
        result = _err("plugin_install", "SOURCE_ERROR", "clone failed", stderr="fatal: nope")
        output = render_result(result, verbose=True)
        assert "detail" in output
        assert "stderr: fatal: nope" in output

    def test_no_error_object(self) -> None:
        assert "Unknown error" in render_result(ServiceResult(ok=False, op="plugin_list"))


# ── Plugin list ──────────────────────────────────────────────────────


class TestPluginList:
    def test_table(self) -> None:
        output = render_result(_ok("plugin_list", plugins=PLUGINS, count=2))
        assert "Name" in output
        assert "pomodoro" in output
        assert "2.1.0" in output
        assert "enabled" in output
        assert "disabled" in output
        assert "acme" in output

    def test_verbose_adds_source(self) -> None:
        output = render_result(_ok("plugin_list", plugins=PLUGINS, count=2), verbose=True)
        assert "jira-sync@acme" in output
        assert "After" in output

    def test_empty(self) -> None:
        output = render_result(_ok("plugin_list", plugins=[], count=0))
        assert output == "No plugins installed."

    def test_bundled_plugin_marked(self) -> None:
        bundled = {
            "name": "done-counter",
            "source": "bundled:done-counter",
            "version": "1.0.0",
            "enabled": False,
            "marketplace": None,
            "bundled": True,
            "after": None,
        }
        output = render_result(_ok("plugin_list", plugins=[bundled], count=1))
        assert "done-counter" in output
        assert "(bundled)" in output
        assert "disabled" in output


class TestDiscover:
    def test_install_state(self) -> None:
        plugins = [
            {
                "name": "pomodoro",
                "version": "2.1.0",
                "marketplace": "todoctl-official",
                "description": "Focus timer",
                "source": "github:todoctl/pomodoro",
                "installed": True,
                "enabled": True,
            },
            {
                "name": "jira-sync",
                "version": None,
                "marketplace": "acme",
                "description": None,
                "source": {"kind": "pypi", "package": "jira"},
                "installed": False,
                "enabled": False,
            },
        ]
        output = render_result(_ok("plugin_discover", plugins=plugins, count=2), verbose=True)
        assert "Focus timer" in output
        assert "enabled" in output
        assert '"package": "jira"' in output

    def test_empty(self) -> None:
        output = render_result(_ok("plugin_discover", plugins=[], count=0))
        assert output == "No plugins available."


class TestInstallAndUpdate:
    def test_install(self) -> None:
        output = render_result(
            _ok(
                "plugin_install",
                name="pomodoro",
                version="2.1.0",
                marketplace="todoctl-official",
                description=None,
            )
        )
        assert "OK" in output
        assert "name: pomodoro" in output
        assert "version: 2.1.0" in output
        assert "description" not in output

    def test_update_lines(self) -> None:
        results = [
            {
                "name": "pomodoro",
                "updated": True,
                "message": "Updated from 2.0.0 to 2.1.0",
                "old_version": "2.0.0",
                "new_version": "2.1.0",
            },
            {"name": "jira-sync", "updated": False, "message": "Already at latest version"},
        ]
        output = render_result(_ok("plugin_update", results=results, updated=1), verbose=True)
        assert "pomodoro: updated" in output
        assert "jira-sync: skipped" in output
        assert "old_version: 2.0.0" in output

    def test_update_nothing_installed(self) -> None:
        output = render_result(_ok("plugin_update", results=[], updated=0))
        assert "No plugins installed." in output


class TestMarketplaces:
    def test_list_marks_official(self) -> None:
        marketplaces = [
            {
                "name": "todoctl-official",
                "source": "github:todoctl/todoctl-plugins",
                "auto_update": True,
                "official": True,
            },
            {"name": "acme", "source": "/srv/acme", "auto_update": False, "official": False},
        ]
        output = render_result(_ok("marketplace_list", marketplaces=marketplaces))
        assert "todoctl-official (official)" in output
        assert "acme" in output
        assert "no" in output

    def test_refresh(self) -> None:
        assert "refreshed: acme, team" in render_result(
            _ok("marketplace_refresh", refreshed=["acme", "team"])
        )
        assert "refreshed: (none)" in render_result(_ok("marketplace_refresh", refreshed=[]))


class TestGenericRenderer:
    def test_unknown_op(self) -> None:
        output = render_result(_ok("something_else", items=[1, 2], flag=True))
        assert "OK" in output
        assert "items: [1,2]" in output
        assert "flag: True" in output


class TestQuiet:
    def test_names_for_listings(self) -> None:
        assert render_quiet(_ok("plugin_list", plugins=PLUGINS)) == "pomodoro\njira-sync"

    def test_marketplace_names(self) -> None:
        result = _ok("marketplace_list", marketplaces=[{"name": "todoctl-official"}])
        assert render_quiet(result) == "todoctl-official"

    def test_ok(self) -> None:
        assert render_quiet(_ok("plugin_enable", name="x")) == "OK: plugin_enable"

    def test_error(self) -> None:
        result = _err("plugin_enable", "NOT_FOUND", "Plugin 'x' is not installed.")
        assert render_quiet(result) == "ERROR: plugin_enable: Plugin 'x' is not installed."
