from worldwiki.core.config import RateLimitRule, Settings

from .fakes import make_settings


def test_env_override_keeps_other_fields_of_the_class(monkeypatch):
    monkeypatch.setenv("RATE_LIMITS__API_KEY_OPERATIONS__WINDOW_MS", "120000")

    rule = Settings(_env_file=None).rate_limit_for("api_key_operations")

    assert rule.window_ms == 120_000
    assert rule.max_requests == 20
    assert rule.key_prefix == "rl:apikey"


def test_env_override_leaves_other_classes_alone(monkeypatch):
    monkeypatch.setenv("RATE_LIMITS__WIKI_GENERATION__MAX_REQUESTS", "3")

    config = Settings(_env_file=None)

    assert config.rate_limit_for("wiki_generation") == RateLimitRule(
        window_ms=60_000, max_requests=3, key_prefix="rl:wiki"
    )
    assert config.rate_limit_for("image_generation").max_requests == 10
    assert config.rate_limit_for("global").max_requests == 200


def test_new_class_gets_generic_defaults(monkeypatch):
    monkeypatch.setenv("RATE_LIMITS__MAP_EXPORT__MAX_REQUESTS", "4")

    rule = Settings(_env_file=None).rate_limit_for("map_export")

    assert rule.max_requests == 4
    assert rule.window_ms == 60_000
    assert rule.key_prefix is None


def test_explicit_rule_replaces_only_what_it_sets():
    config = make_settings(rate_limits={"api_key_operations": RateLimitRule(max_requests=2)})

    rule = config.rate_limit_for("api_key_operations")
    assert rule.max_requests == 2
    assert rule.key_prefix == "rl:apikey"


def test_unknown_class_falls_back_to_global():
    assert make_settings().rate_limit_for("nonexistent") == make_settings().rate_limit_for("global")
