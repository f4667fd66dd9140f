"""Tests for the command line interface."""

import pytest
import yaml
from click.testing import CliRunner

from nft_flipper import cli
from nft_flipper.models import Category
from nft_flipper.storage import OutputTree

from conftest import CONTRACT, GATEWAY, FakeContract, FakePinner, collection_on_web


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("RPC", "IPFS", "CONTRACT", "PINATA_JWT", "PINNING_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "endpoints": {"rpc_url": "https://rpc.test", "ipfs_gateway": GATEWAY, "contract_address": CONTRACT},
        "defaults": {"output_dir": str(tmp_path / "output"), "retry_attempts": 1},
    }))
    return path


@pytest.fixture
def upstream(monkeypatch, web):
    """Route the CLI's clients to in-memory fakes."""
    contract = FakeContract(uris=collection_on_web(web, 2))
    pinner = FakePinner()
    monkeypatch.setattr(cli, "build_contract", lambda cfg: contract)
    monkeypatch.setattr(cli, "build_fetcher", lambda cfg: web.fetcher())
    monkeypatch.setattr(cli, "build_pinner", lambda cfg: pinner)
    return contract, pinner


class TestConfigCommands:
    def test_init_config_writes_yaml(self, tmp_path):
        path = tmp_path / "cfg" / "config.yaml"

        result = CliRunner().invoke(cli.main, [
            "init-config", "--config", str(path), "--rpc", "https://rpc.test", "--contract", "0xabc",
        ])

        assert result.exit_code == 0
        data = yaml.safe_load(path.read_text())
        assert data["endpoints"]["rpc_url"] == "https://rpc.test"
        assert data["endpoints"]["contract_address"] == "0xabc"

    def test_check_config_missing_values(self, tmp_path):
        result = CliRunner().invoke(cli.main, ["check-config", "--config", str(tmp_path / "none.yaml")])

        assert result.exit_code == 1
        assert "Missing required settings" in result.output

    def test_check_config_ok(self, config_file):
        result = CliRunner().invoke(cli.main, ["check-config", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "All required settings configured" in result.output

    def test_run_refuses_without_config(self, tmp_path):
        result = CliRunner().invoke(cli.main, ["run", "--config", str(tmp_path / "none.yaml")])

        assert result.exit_code == 1
        assert "Configuration issues" in result.output
        assert "Missing required configuration" in result.output

    def test_missing_config_stops_before_any_client(self, tmp_path, monkeypatch):
        """Missing settings abort before any upstream client is built."""
        built = []
        monkeypatch.setattr(cli, "build_contract", lambda cfg: built.append(cfg))

        result = CliRunner().invoke(cli.main, ["fetch", "--config", str(tmp_path / "none.yaml")])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert built == []


class TestRunCommand:
    def test_run_with_yes_publishes(self, config_file, tmp_path, upstream):
        _, pinner = upstream

        result = CliRunner().invoke(cli.main, ["run", "--config", str(config_file), "--yes"])

        assert result.exit_code == 0, result.output
        assert [name for name, _ in pinner.bundles] == ["images", "metadata"]
        assert "Base URI" in result.output

    def test_declined_prompt_exits_nonzero(self, config_file, tmp_path, upstream):
        _, pinner = upstream

        result = CliRunner().invoke(cli.main, ["run", "--config", str(config_file)], input="n\n")

        assert result.exit_code == 1
        assert pinner.bundles == []
        tree = OutputTree(tmp_path / "output", CONTRACT)
        assert tree.snapshot(Category.FLIPPED).highest_persisted_id == 1

    def test_no_publish_flag(self, config_file, upstream):
        _, pinner = upstream

        result = CliRunner().invoke(cli.main, ["run", "--config", str(config_file), "--no-publish"])

        assert result.exit_code == 0, result.output
        assert pinner.bundles == []

    def test_upstream_failure_exits_nonzero(self, config_file, upstream):
        contract, _ = upstream
        contract.failing.add(1)

        result = CliRunner().invoke(cli.main, ["run", "--config", str(config_file), "--yes"])

        assert result.exit_code == 1
        assert "fetch failed at token #1" in result.output


class TestStatusCommand:
    def test_status_after_run(self, config_file, upstream):
        runner = CliRunner()
        runner.invoke(cli.main, ["run", "--config", str(config_file), "--yes"])

        result = runner.invoke(cli.main, ["status", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "original" in result.output
        assert "flipped" in result.output
        assert "Base URI" in result.output

    def test_status_on_empty_output(self, config_file):
        result = CliRunner().invoke(cli.main, ["status", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Not published yet" in result.output
