"""Unit tests for settings loading."""

import pytest

from toleration_defaulter.codec import TolerationSource
from toleration_defaulter.config import DecodeFailurePolicy, Settings, load_settings
from toleration_defaulter.exceptions import ConfigurationError


def test_defaults_without_file_or_environment():
    settings = load_settings(environ={})

    assert settings == Settings()
    assert settings.default_toleration_seconds == 300
    assert settings.tolerations_storage is TolerationSource.SPEC
    assert settings.decode_failure_policy is DecodeFailurePolicy.REJECT


def test_load_from_yaml(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text(
        "default_toleration_seconds: 120\n"
        "tolerations_storage: annotation\n"
        "decode_failure_policy: ignore\n"
    )

    settings = load_settings(path, environ={})

    assert settings.default_toleration_seconds == 120
    assert settings.tolerations_storage is TolerationSource.ANNOTATION
    assert settings.decode_failure_policy is DecodeFailurePolicy.IGNORE


def test_empty_yaml_file_uses_defaults(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text("")

    assert load_settings(path, environ={}) == Settings()


def test_environment_overrides_file(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text("default_toleration_seconds: 120\n")

    settings = load_settings(
        path,
        environ={
            "TOLERATION_DEFAULTER_DEFAULT_SECONDS": "60",
            "TOLERATION_DEFAULTER_STORAGE": "annotation",
        },
    )

    assert settings.default_toleration_seconds == 60
    assert settings.tolerations_storage is TolerationSource.ANNOTATION


@pytest.mark.parametrize(
    "content",
    [
        "default_toleration_seconds: 0\n",
        "default_toleration_seconds: -1\n",
        "default_toleration_seconds: forever\n",
        "tolerations_storage: etcd\n",
        "unknown_setting: true\n",
        "- just\n- a list\n",
        "default_toleration_seconds: [\n",
    ],
)
def test_invalid_settings_file(tmp_path, content):
    path = tmp_path / "settings.yml"
    path.write_text(content)

    with pytest.raises(ConfigurationError):
        load_settings(path, environ={})


def test_invalid_environment_value():
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings(environ={"TOLERATION_DEFAULTER_DEFAULT_SECONDS": "soon"})

    assert exc_info.value.message == "Invalid settings"


def test_settings_are_frozen():
    settings = Settings()

    with pytest.raises(ValueError):
        settings.default_toleration_seconds = 10
