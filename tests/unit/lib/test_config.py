from brenner.lib import config


def test_packaged_defaults_when_user_config_missing(monkeypatch, tmp_path):
    monkeypatch.setenv("BRENNER_HOME", str(tmp_path))
    config.clear_cache()
    try:
        assert config.logging_level() == "WARNING"
        assert config.base_url() is None
        assert config.roster()["Critic"] == "adversarial_critic"
    finally:
        config.clear_cache()


def test_init_config_copies_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("BRENNER_HOME", str(tmp_path))
    assert config.init_config() is True
    assert (tmp_path / "config.yaml").read_text() == config.get_default_config_path().read_text()
    assert config.init_config() is False
    config.clear_cache()


def test_user_config_overrides(brenner_home, tmp_path):
    (tmp_path / "home" / "config.yaml").write_text("base_url: https://brenner.example/\nroster:\n  Skeptic: adversarial_critic\n")
    config.clear_cache()

    assert config.base_url() == "https://brenner.example/"
    assert config.roster() == {"Skeptic": "adversarial_critic"}
    assert config.data_dir().is_absolute()
