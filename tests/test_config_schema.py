# tests/test_config_schema.py
import json

import pytest

from service import config_schema
from service.config_schema import ConfigError


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


# Loading ----------------------------------------------------------------------


def test_defaults_without_config_path(monkeypatch):
    monkeypatch.setenv("TZ", "Europe/Berlin")

    cfg = config_schema.load_config()

    assert cfg == {
        "timezone": "Europe/Berlin",
        "schedule": config_schema.DEFAULT_SCHEDULE,
        "run_on_start": False,
        "tracker": {},
    }


def test_load_yaml_from_config_path_env(tmp_path, monkeypatch):
    path = _write(
        tmp_path,
        "config.yaml",
        """
timezone: America/Chicago
schedule:
  daily_time: ["08:00", "17:30"]
run_on_start: "yes"
misfire_grace_time: "120"
tracker:
  recipient: me@example.com
  sources:
    - name: Acme
      career_url: https://acme.test/careers
""",
    )
    monkeypatch.setenv("CONFIG_PATH", path)

    cfg = config_schema.load_config()
    config_schema.validate(cfg)

    assert cfg["timezone"] == "America/Chicago"
    assert cfg["run_on_start"] is True
    assert cfg["misfire_grace_time"] == 120
    settings = config_schema.tracker_settings(cfg)
    assert settings.recipient == "me@example.com"
    assert [s.name for s in settings.sources] == ["Acme"]


def test_load_json_explicit_path_wins_over_env(tmp_path, monkeypatch):
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "missing.json"))
    path = _write(tmp_path, "config.json", json.dumps({"schedule": "*/30 * * * *"}))

    cfg = config_schema.load_config(path)

    assert cfg["schedule"] == "*/30 * * * *"
    assert cfg["timezone"] == "UTC"


def test_empty_yaml_is_an_empty_config(tmp_path):
    cfg = config_schema.load_config(_write(tmp_path, "empty.yml", ""))
    assert cfg["schedule"] == config_schema.DEFAULT_SCHEDULE


@pytest.mark.parametrize(
    "name, text",
    [
        ("bad.yaml", "schedule: [unclosed"),
        ("list.yaml", "- a\n- b\n"),
        ("bad.json", "{not json"),
        ("list.json", "[1, 2]"),
    ],
)
def test_unreadable_configs_raise(tmp_path, name, text):
    with pytest.raises(ConfigError):
        config_schema.load_config(_write(tmp_path, name, text))


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        config_schema.load_config(str(tmp_path / "nope.yaml"))


# Validation -------------------------------------------------------------------


def _cfg(**overrides):
    cfg = {
        "timezone": "UTC",
        "schedule": "0 9 * * *",
        "run_on_start": False,
        "tracker": {"recipient": "me@example.com"},
    }
    cfg.update(overrides)
    return cfg


@pytest.mark.parametrize(
    "schedule",
    [
        "0 9 * * *",
        {"cron": "*/15 * * * *"},
        {"cron": {"hour": 9, "minute": 30}},
        {"interval": {"hours": 6}},
        {"interval": {"minutes": 0, "seconds": 30}},
        {"daily_time": "07:05"},
        {"daily_time": ["07:05", "19:00:30"]},
        {"daily_time": {"time": "09:00", "day_of_week": "mon-fri"}},
    ],
)
def test_valid_schedules(schedule):
    config_schema.validate(_cfg(schedule=schedule))


@pytest.mark.parametrize(
    "overrides, match",
    [
        ({"timezone": "Mars/Olympus_Mons"}, "Unknown timezone"),
        ({"timezone": 5}, "timezone"),
        ({"schedule": "0 9 * *"}, "5 fields"),
        ({"schedule": "99 * * * *"}, "crontab '99 .* is invalid"),
        ({"schedule": {"cron": "0 25 * * *"}}, "is invalid"),
        ({"schedule": {"cron": {"hour": 25}}}, "schedule.cron' is invalid"),
        ({"schedule": {"cron": {"fortnight": 1}}}, "schedule.cron' is invalid"),
        ({"schedule": 60}, "crontab string or an object"),
        ({"schedule": {}}, "exactly one trigger"),
        ({"schedule": {"cron": "0 9 * * *", "interval": {"hours": 1}}}, "exactly one trigger"),
        ({"schedule": {"cron": {}}}, "non-empty object"),
        ({"schedule": {"interval": {"fortnights": 1}}}, "unknown field"),
        ({"schedule": {"interval": {"hours": "soon"}}}, "must be an integer"),
        ({"schedule": {"interval": {"hours": 0}}}, "more than zero"),
        ({"schedule": {"daily_time": "9am"}}, "HH:MM"),
        ({"schedule": {"daily_time": "24:00"}}, "out of range"),
        ({"schedule": {"daily_time": []}}, "daily_time"),
        ({"run_on_start": "maybe"}, "run_on_start"),
        ({"misfire_grace_time": -1}, "misfire_grace_time"),
        ({"tracker": ["not", "a", "dict"]}, "tracker"),
        ({"tracker": {"recipient": "me@example.com", "notifier": "pigeon"}}, "notifier"),
        ({"tracker": {}}, "needs a recipient"),
    ],
)
def test_invalid_configs_raise(overrides, match):
    with pytest.raises(ConfigError, match=match):
        config_schema.validate(_cfg(**overrides))


def test_recipient_may_come_from_env(monkeypatch):
    monkeypatch.setenv("JOB_TRACKER_RECIPIENT", "+15550001111")
    config_schema.validate(_cfg(tracker={}))


def test_tracker_settings_applies_non_none_overrides():
    cfg = _cfg(tracker={"recipient": "me@example.com", "notifier": "imessage"})

    assert config_schema.tracker_settings(cfg, dry_run=None).effective_notifier == "imessage"
    assert config_schema.tracker_settings(cfg, dry_run=True).effective_notifier == "log"
    # caller's cfg is left alone
    assert "dry_run" not in cfg["tracker"]
