import pytest

import flask_app
from frameproxy.config import ProxyConfig


def test_defaults():
    config = ProxyConfig.from_env({})
    assert config.port == 3000
    assert config.timeout == 5.0
    assert config.rate_limit == 30
    assert config.rate_window == 10.0
    assert config.banner is True
    assert config.consent_domains == ("google.com",)


def test_from_env():
    config = ProxyConfig.from_env(
        {
            "PORT": "8080",
            "FRAMEPROXY_HOST": "127.0.0.1",
            "FRAMEPROXY_TIMEOUT": "2.5",
            "FRAMEPROXY_RATE_LIMIT": "100",
            "FRAMEPROXY_RATE_WINDOW": "60",
            "FRAMEPROXY_BANNER": "off",
            "FRAMEPROXY_CONSENT_DOMAINS": "Google.com, youtube.com,",
            "FRAMEPROXY_LOG_LEVEL": "debug",
        }
    )
    assert config.port == 8080
    assert config.host == "127.0.0.1"
    assert config.timeout == 2.5
    assert config.rate_limit == 100
    assert config.rate_window == 60.0
    assert config.banner is False
    assert config.consent_domains == ("google.com", "youtube.com")
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize("name,value", [("PORT", "http"), ("FRAMEPROXY_TIMEOUT", "soon"), ("FRAMEPROXY_RATE_LIMIT", "0")])
def test_bad_numbers_name_the_variable(name, value):
    with pytest.raises(ValueError, match=name):
        ProxyConfig.from_env({name: value})


def test_cli_overrides_environment():
    config = flask_app.parse_args(
        ["--port", "9000", "--timeout", "1.5", "--no-banner", "--debug"],
        config=ProxyConfig.from_env({"PORT": "8080"}),
    )
    assert config.port == 9000
    assert config.timeout == 1.5
    assert config.banner is False
    assert config.log_level == "DEBUG"


def test_cli_defaults_come_from_environment():
    config = flask_app.parse_args([], config=ProxyConfig.from_env({"PORT": "8080"}))
    assert config.port == 8080
    assert config.banner is True
