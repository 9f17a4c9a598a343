import pytest

from orderbot.utils.config import Config, load_config


def test_load_config_merges_assets_file(tmp_path):
    (tmp_path / "assets.yaml").write_text('"0xAbC0000000000000000000000000000000000001": "dAAPL"\n', encoding="utf-8")
    cfg_path = tmp_path / "bot.yaml"
    cfg_path.write_text(
        "\n".join(
            [
                "processor:",
                "  network_addresses:",
                '    11155111: "0x00000000000000000000000000000000000000aa"',
                "execution:",
                "  strategy: sponsored",
                "assets_file: assets.yaml",
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_config(str(cfg_path))
    assert cfg.execution.strategy == "sponsored"
    assert cfg.resolve_processor_address(11155111).endswith("aa")
    assert cfg.asset_symbol("0xabc0000000000000000000000000000000000001") == "dAAPL"
    assert cfg.asset_symbol("0x1234") == "0x1234"


def test_missing_processor_for_chain_raises():
    with pytest.raises(ValueError):
        Config().resolve_processor_address(1)
    assert Config(processor={"address": "0xproc"}).resolve_processor_address(1) == "0xproc"


def test_env_defaults_and_relayer_url(monkeypatch):
    monkeypatch.setenv("PIMLICO_API_KEY", "pk")
    monkeypatch.setenv("DINARI_API_KEY", "dk")
    monkeypatch.setenv("PRIVATE_KEY_EOA", "0x" + "11" * 32)
    cfg = Config()
    assert cfg.pricing.api_key == "dk"
    assert cfg.chain.private_key == "0x" + "11" * 32
    assert cfg.relayer.url == "https://api.pimlico.io/v2/sepolia/rpc?apikey=pk"
    assert cfg.execution.receipt_timeout_ms == 120_000
    assert cfg.relayer.receipt_timeout_ms == 60_000
