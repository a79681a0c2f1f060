from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest

from bulb_agent import cli
from bulb_agent.config import AgentConfig
from bulb_agent.registration import RegistrationError


def test_parser_defaults():
    args = cli.build_parser().parse_args([])

    assert args.hub_url is None
    assert args.config is None
    assert args.port is None


def test_build_config_without_args_matches_defaults():
    cfg = cli._build_config(cli.build_parser().parse_args([]))

    assert cfg == AgentConfig()


def test_build_config_positional_hub_and_flags():
    args = cli.build_parser().parse_args(
        ["http://hub.test:9393", "--port", "9600", "--retry-interval", "1.5"],
    )

    cfg = cli._build_config(args)

    assert cfg.hub_url == "http://hub.test:9393"
    assert cfg.port == 9600
    assert cfg.retry_interval == 1.5


def test_parse_level():
    assert cli._parse_level("debug") == logging.DEBUG
    assert cli._parse_level("30") == 30
    assert cli._parse_level("bogus") == logging.INFO


def test_main_invalid_config_exits_1(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["not-a-url"])

    assert exc.value.code == 1
    assert "hub_url must be an http(s) URL" in capsys.readouterr().err


def test_run_agent_registration_failure_is_fatal():
    with patch.object(cli, "RegistrationClient") as client_cls, \
            patch.object(cli, "create_agent_server") as create_server:
        client_cls.return_value.register.side_effect = RegistrationError("boom")

        assert cli.run_agent(AgentConfig()) == 1

    create_server.assert_not_called()


def test_run_agent_bind_failure_is_fatal():
    with patch.object(cli, "RegistrationClient"), \
            patch.object(cli, "create_agent_server", side_effect=OSError("in use")):
        assert cli.run_agent(AgentConfig()) == 1


def test_run_agent_registers_before_binding_then_serves():
    order = []
    server = MagicMock()
    server.serve_forever.side_effect = KeyboardInterrupt

    with patch.object(cli, "RegistrationClient") as client_cls, \
            patch.object(cli, "create_agent_server") as create_server:
        client_cls.return_value.register.side_effect = lambda: order.append("register")

        def _create(store, host, port):
            order.append("bind")
            assert store.get_name() == "Attic"
            return server

        create_server.side_effect = _create

        assert cli.run_agent(AgentConfig(port=9700, bulb_name="Attic")) == 0

    assert order == ["register", "bind"]
    client_cls.assert_called_once()
    assert client_cls.call_args.args[0] == "http://localhost:9393"
    assert client_cls.call_args.kwargs == {"retry_interval": 2.0, "timeout": 10.0}
    server.server_close.assert_called_once()


def test_main_non_finite_retry_interval_exits_1(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--retry-interval", "nan"])

    assert exc.value.code == 1
    assert "retry_interval must be a finite number" in capsys.readouterr().err
