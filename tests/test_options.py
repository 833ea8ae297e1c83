"""Unit tests for limiter option resolution."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from rategate.adapters.engine.base import GCRA_ALGORITHM, Limit
from rategate.core.config import LimiterSettings
from rategate.core.errors import ConfigurationAppError
from rategate.core.keys import real_ip
from rategate.core.options import (
    DEFAULT_CONFIG,
    DEFAULT_MESSAGE,
    EngineErrorPolicy,
    LimiterDefaults,
    LimiterOptions,
    PlainTextLimitHandler,
    internal_error_response,
    never_skip,
    options_from_settings,
    resolve_config,
)


@pytest.fixture
def engine() -> Mock:
    return Mock(name="engine")


class TestDefaults:
    """Omitted fields resolve to the documented defaults."""

    def test_every_omitted_field_gets_its_default(self, engine: Mock) -> None:
        config = resolve_config(LimiterOptions(engine=engine))

        assert config.engine is engine
        assert config.skip is never_skip
        assert config.max_rate == 10
        assert config.burst == 10
        assert config.period == timedelta(minutes=1)
        assert config.algorithm == "sliding-window"
        assert config.key_prefix == "rategate"
        assert config.status_code == 429
        assert config.message == DEFAULT_MESSAGE
        assert config.key_fn is real_ip
        assert config.on_engine_error is internal_error_response
        assert config.skip_on_engine_error is False
        assert config.engine_timeout is None

    def test_default_limit_handler_uses_resolved_status_and_message(self, engine: Mock) -> None:
        config = resolve_config(LimiterOptions(engine=engine, status_code=503, message="slow down"))

        assert config.on_limit_reached == PlainTextLimitHandler(status_code=503, message="slow down")

    def test_default_policy_is_fail_closed(self, engine: Mock) -> None:
        config = resolve_config(LimiterOptions(engine=engine))

        assert config.engine_error_policy is EngineErrorPolicy.FAIL_CLOSED

    @pytest.mark.parametrize("field", ["key_prefix", "message", "algorithm"])
    def test_empty_string_means_default(self, engine: Mock, field: str) -> None:
        config = resolve_config(LimiterOptions(engine=engine, **{field: ""}))

        assert getattr(config, field) == getattr(DEFAULT_CONFIG, field)

    def test_shared_defaults_are_not_mutated(self, engine: Mock) -> None:
        resolve_config(LimiterOptions(engine=engine, max_rate=99, key_prefix="other"))

        assert DEFAULT_CONFIG == LimiterDefaults()


class TestExplicitValues:
    """Explicit values win over defaults, field by field."""

    def test_override_is_independent_per_field(self, engine: Mock) -> None:
        config = resolve_config(LimiterOptions(engine=engine, max_rate=3))

        assert config.max_rate == 3
        assert config.burst == 10
        assert config.algorithm == "sliding-window"

    def test_all_explicit_values_preserved(self, engine: Mock) -> None:
        def skip(request) -> bool:
            return True

        def key_fn(request) -> str:
            return "user-1"

        def on_limit_reached(request):
            return None

        def on_engine_error(exc, request):
            return None

        clock = Mock(return_value=5.0)

        config = resolve_config(
            LimiterOptions(
                engine=engine,
                skip=skip,
                max_rate=3,
                burst=5,
                period=timedelta(seconds=10),
                algorithm=GCRA_ALGORITHM,
                key_prefix="api",
                status_code=503,
                message="busy",
                key_fn=key_fn,
                on_limit_reached=on_limit_reached,
                on_engine_error=on_engine_error,
                skip_on_engine_error=True,
                engine_timeout=0.25,
                clock=clock,
            )
        )

        assert config.skip is skip
        assert config.max_rate == 3
        assert config.burst == 5
        assert config.period == timedelta(seconds=10)
        assert config.algorithm == "gcra"
        assert config.key_prefix == "api"
        assert config.status_code == 503
        assert config.message == "busy"
        assert config.key_fn is key_fn
        assert config.on_limit_reached is on_limit_reached
        assert config.on_engine_error is on_engine_error
        assert config.skip_on_engine_error is True
        assert config.engine_error_policy is EngineErrorPolicy.FAIL_OPEN
        assert config.engine_timeout == 0.25
        assert config.clock is clock

    def test_period_accepts_seconds(self, engine: Mock) -> None:
        config = resolve_config(LimiterOptions(engine=engine, period=2.5))

        assert config.period == timedelta(seconds=2.5)

    def test_explicit_false_fail_open_flag_is_kept(self, engine: Mock) -> None:
        defaults = LimiterDefaults(skip_on_engine_error=True)

        config = resolve_config(LimiterOptions(engine=engine, skip_on_engine_error=False), defaults)

        assert config.skip_on_engine_error is False

    def test_limit_is_derived_from_config(self, engine: Mock) -> None:
        config = resolve_config(
            LimiterOptions(engine=engine, max_rate=3, burst=4, period=10, algorithm=GCRA_ALGORITHM)
        )

        assert config.limit == Limit(
            period=timedelta(seconds=10),
            algorithm="gcra",
            rate=3,
            burst=4,
        )


class TestValidation:
    """Construction fails fast on a missing engine or out-of-range values."""

    def test_missing_engine_is_fatal(self) -> None:
        with pytest.raises(ConfigurationAppError) as exc_info:
            resolve_config(LimiterOptions(max_rate=5))

        assert exc_info.value.code == "engine_missing"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_rate": 0},
            {"max_rate": -1},
            {"burst": 0},
            {"max_rate": True},
            {"period": 0},
            {"period": timedelta(seconds=-1)},
            {"status_code": 99},
            {"status_code": 600},
            {"engine_timeout": 0},
        ],
    )
    def test_invalid_explicit_values(self, engine: Mock, kwargs: dict) -> None:
        with pytest.raises(ConfigurationAppError) as exc_info:
            resolve_config(LimiterOptions(engine=engine, **kwargs))

        assert exc_info.value.code == "invalid_limiter_option"
        assert exc_info.value.details["field"] == next(iter(kwargs))


def test_resolution_is_deterministic(engine: Mock) -> None:
    options = LimiterOptions(engine=engine, max_rate=7, message="wait")

    assert resolve_config(options) == resolve_config(options)


class TestOptionsFromSettings:
    """Environment settings feed options without overriding defaults when unset."""

    def test_unset_settings_resolve_to_defaults(self, engine: Mock) -> None:
        options = options_from_settings(engine, LimiterSettings())

        assert resolve_config(options) == resolve_config(LimiterOptions(engine=engine))

    def test_set_settings_are_applied(self, engine: Mock) -> None:
        limiter_settings = LimiterSettings(
            max_rate=5,
            period_seconds=30,
            key_prefix="svc",
            skip_on_engine_error=True,
            engine_timeout_seconds=0.5,
        )

        config = resolve_config(options_from_settings(engine, limiter_settings))

        assert config.max_rate == 5
        assert config.period == timedelta(seconds=30)
        assert config.key_prefix == "svc"
        assert config.skip_on_engine_error is True
        assert config.engine_timeout == 0.5
        assert config.burst == 10

    def test_overrides_beat_settings(self, engine: Mock) -> None:
        options = options_from_settings(engine, LimiterSettings(max_rate=5), max_rate=8)

        assert resolve_config(options).max_rate == 8

    def test_settings_read_from_environment(self, engine: Mock, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RATEGATE_MAX_RATE", "42")
        monkeypatch.setenv("RATEGATE_ALGORITHM", "gcra")

        config = resolve_config(options_from_settings(engine, LimiterSettings()))

        assert config.max_rate == 42
        assert config.algorithm == "gcra"
