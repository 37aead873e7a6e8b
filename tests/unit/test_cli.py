"""Tests for the ordermint CLI (commands run against an injected Service)."""

from __future__ import annotations

import json
import signal
from pathlib import Path
from typing import Any

import pytest

from ordermint import __version__
from ordermint.cli import EXIT_CONFIG, EXIT_OK, EXIT_RUNTIME, build_parser, main
from ordermint.config import ServiceConfig
from ordermint.core import EventKind
from ordermint.events.types import ProcessedRecord
from ordermint.ledger.submitter import DryRunSubmitter
from ordermint.net.http_client import HttpResponse
from ordermint.service import Service, build_service
from ordermint.store import InMemoryOrderStore

NODE = "https://node.test/v1"
BUY_URL = f"{NODE}/accounts/0xc50c/events/0xf21c::orders::OrderEvents/buy_order_events"
SELL_URL = f"{NODE}/accounts/0xc50c/events/0xf21c::orders::OrderEvents/sell_order_events"
VIEW_URL = f"{NODE}/view"


@pytest.fixture
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def submitter() -> DryRunSubmitter:
    return DryRunSubmitter()


@pytest.fixture
def service(
    fake_http: Any,
    store: InMemoryOrderStore,
    submitter: DryRunSubmitter,
    make_raw_event: Any,
) -> Service:
    fake_http.routes[("GET", BUY_URL)] = HttpResponse(200, [make_raw_event(1)])
    fake_http.routes[("GET", SELL_URL)] = HttpResponse(200, [])
    fake_http.routes[("POST", VIEW_URL)] = HttpResponse(200, [False])
    fake_http.routes[("GET", NODE + "/")] = HttpResponse(200, {"ledger_version": "99"})
    config = ServiceConfig(
        node_url=NODE,
        events_account="0xc50c",
        orders_module_address="0xf21c",
        token_module_address="0xabc",
        poll_interval_s=1,
    )
    return build_service(config, http_client=fake_http, submitter=submitter, store=store)


def _json(capsys: pytest.CaptureFixture[str]) -> Any:
    return json.loads(capsys.readouterr().out)


class TestParser:
    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_log_level_case_insensitive(self) -> None:
        args = build_parser().parse_args(["--log-level", "debug", "run-once"])
        assert args.log_level == "DEBUG"


class TestRunOnce:
    def test_prints_report(
        self,
        service: Service,
        submitter: DryRunSubmitter,
        store: InMemoryOrderStore,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        assert main(["run-once"], service=service) == EXIT_OK

        report = _json(capsys)
        assert report["cycle_status"] == "ok"
        assert report["inserted"] == 1
        assert report["results"][0]["status"] == "minted"
        assert report["results"][0]["auto_verified"] is True
        assert [c.function_name for c in submitter.calls] == ["set_user_verification", "mint"]
        assert store.count() == 1


class TestMetrics:
    def test_prints_prometheus(
        self, service: Service, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["metrics"], service=service) == EXIT_OK
        out = capsys.readouterr().out
        assert 'ordermint_poll_cycles_total{status="ok"} 1' in out
        assert 'ordermint_dispatch_total{status="minted"} 1' in out


class TestPreflight:
    def test_ok(self, service: Service, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["preflight"], service=service) == EXIT_OK
        checks = _json(capsys)
        assert checks["ledger"] == "ok"
        assert checks["ledger_version"] == 99
        assert checks["store"] == "ok"
        assert checks["records"] == 0
        assert checks["dry_run"] is True

    def test_ledger_unreachable(
        self, service: Service, fake_http: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        fake_http.routes[("GET", NODE + "/")] = HttpResponse(503, {})
        assert main(["preflight"], service=service) == EXIT_RUNTIME
        assert _json(capsys)["ledger"].startswith("error:")


class TestKyc:
    def test_status(self, service: Service, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["kyc-status", "0xA11CE"], service=service) == EXIT_OK
        assert _json(capsys) == {"identity": "0xA11CE", "verified": False}

    def test_status_check_failure(
        self, service: Service, fake_http: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        fake_http.routes[("POST", VIEW_URL)] = HttpResponse(500, {})
        assert main(["kyc-status", "0xA11CE"], service=service) == EXIT_RUNTIME
        assert "verification check failed" in capsys.readouterr().err

    def test_verify(
        self,
        service: Service,
        submitter: DryRunSubmitter,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        assert main(["kyc-verify", "0xA11CE"], service=service) == EXIT_OK
        out = _json(capsys)
        assert out["identity"] == "0xA11CE"
        assert out["success"] is True
        assert submitter.calls[0].arguments == ("0xA11CE", True)

    def test_verify_rejected(
        self, fake_http: Any, make_raw_event: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = ServiceConfig(node_url=NODE, token_module_address="0xabc")
        service = build_service(
            config,
            http_client=fake_http,
            submitter=DryRunSubmitter(fail_functions=frozenset({"set_user_verification"})),
            store=InMemoryOrderStore(),
        )
        assert main(["kyc-verify", "0xA11CE"], service=service) == EXIT_RUNTIME
        assert _json(capsys)["error_message"] == "dry-run configured failure"


class TestReplay:
    def test_replays_recorded_event(
        self,
        service: Service,
        store: InMemoryOrderStore,
        submitter: DryRunSubmitter,
        make_event: Any,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        store.insert(ProcessedRecord.from_event(make_event(4, kind=EventKind.SELL), 1))

        assert main(["replay", "0xA11CE", "sell", "4"], service=service) == EXIT_OK
        result = _json(capsys)
        assert result["status"] == "burned"
        assert submitter.calls[-1].function_name == "admin_burn_from"
        assert store.count() == 1

    def test_unknown_record(self, service: Service, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["replay", "0xA11CE", "buy", "77"], service=service) == EXIT_RUNTIME
        assert "no processed record" in capsys.readouterr().err

    @pytest.mark.parametrize(("kind", "seq"), [("transfer", "1"), ("buy", "abc")])
    def test_invalid_key(
        self, service: Service, kind: str, seq: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["replay", "0xA11CE", kind, seq], service=service) == EXIT_CONFIG
        assert "invalid replay key" in capsys.readouterr().err


class TestRun:
    def test_runs_for_duration(
        self,
        service: Service,
        store: InMemoryOrderStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        installed: list[int] = []
        monkeypatch.setattr(signal, "signal", lambda signum, handler: installed.append(signum))

        assert main(["run", "--duration", "0.2"], service=service) == EXIT_OK
        assert set(installed) == {signal.SIGINT, signal.SIGTERM}
        assert store.count() == 1


class TestConfigErrors:
    def test_invalid_flag_value(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--page-size", "0", "run-once"]) == EXIT_CONFIG
        assert "page_size" in capsys.readouterr().err

    def test_invalid_env(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("ORDERMINT_DRY_RUN", "maybe")
        assert main(["run-once"]) == EXIT_CONFIG
        assert "ORDERMINT_DRY_RUN" in capsys.readouterr().err

    def test_malformed_redis_url(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("ORDERMINT_REDIS_URL", "notaurl://localhost")
        assert main(["--db-path", ":memory:", "run-once"]) == EXIT_CONFIG
        assert "redis_url" in capsys.readouterr().err

    def test_unopenable_db_path(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        assert main(["--db-path", str(blocker / "orders.db"), "run-once"]) == EXIT_RUNTIME
        assert "cannot open store" in capsys.readouterr().err
