"""Tests for runner configuration."""

from splunk_runner.config import Config


def test_derived_paths(tmp_path):
    cfg = Config(splunk_home=tmp_path, splunk_mgmt_host="127.0.0.1:8089")

    assert cfg.splunk_bin == tmp_path / "bin" / "splunk"
    assert cfg.splunkd_log == tmp_path / "var" / "log" / "splunk" / "splunkd.log"
    assert cfg.user_seed_path == tmp_path / "etc" / "system" / "local" / "user-seed.conf"
    assert cfg.health_url == (
        "http://127.0.0.1:8089/services/server/health/splunkd/details?output_mode=json"
    )


def test_password_from_setting(tmp_path):
    cfg = Config(splunk_home=tmp_path, splunk_password="from-env")

    assert cfg.get_password() == "from-env"


def test_password_from_user_seed(tmp_path):
    cfg = Config(splunk_home=tmp_path, splunk_password="")
    cfg.user_seed_path.parent.mkdir(parents=True)
    cfg.user_seed_path.write_text("[user_info]\nUSERNAME = admin\nPASSWORD = Xy-12 ab\n")

    assert cfg.get_password() == "Xy-12 ab"


def test_password_missing(tmp_path):
    cfg = Config(splunk_home=tmp_path, splunk_password="")

    assert cfg.get_password() == ""
