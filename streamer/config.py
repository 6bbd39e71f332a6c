"""Configuration loading: defaults <- YAML/JSON file <- env vars <- CLI args."""

import argparse
import logging
import os
from dataclasses import dataclass, field

import yaml

from streamer.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "STREAMER_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class NatsConfig:
    servers: list[str] = field(default_factory=lambda: ["nats://127.0.0.1:4222"])
    name: str = "streamer"
    user: str = ""
    password: str = ""
    token: str = ""
    ca_file: str = ""
    cert_file: str = ""
    key_file: str = ""
    connect_timeout: float = 2.0
    reconnect_time_wait: float = 2.0
    max_reconnect_attempts: int = 60
    publish_timeout: float = 5.0

    @classmethod
    def from_dict(cls, d: dict) -> "NatsConfig":
        servers = d.get("servers", cls().servers)
        if isinstance(servers, str):
            servers = _split_list(servers)
        return cls(
            servers=list(servers),
            name=d.get("name", cls.name),
            user=d.get("user", cls.user),
            password=d.get("password", cls.password),
            token=d.get("token", cls.token),
            ca_file=d.get("ca_file", cls.ca_file),
            cert_file=d.get("cert_file", cls.cert_file),
            key_file=d.get("key_file", cls.key_file),
            connect_timeout=_number(d, "connect_timeout", float, cls.connect_timeout),
            reconnect_time_wait=_number(d, "reconnect_time_wait", float, cls.reconnect_time_wait),
            max_reconnect_attempts=_number(
                d, "max_reconnect_attempts", int, cls.max_reconnect_attempts
            ),
            publish_timeout=_number(d, "publish_timeout", float, cls.publish_timeout),
        )


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    file: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "LogConfig":
        return cls(
            level=str(d.get("log_level", cls.level)).upper(),
            file=d.get("log_file", cls.file),
        )


@dataclass(frozen=True)
class PathConfig:
    path: str      # glob pattern
    prefix: str = ""


@dataclass(frozen=True)
class Config:
    nats: NatsConfig = field(default_factory=NatsConfig)
    log: LogConfig = field(default_factory=LogConfig)
    prefix: str = ""
    separator: str = "."
    paths: list[PathConfig] = field(default_factory=list)
    report_sec: int = 0
    poll_interval: float = 0.5
    missing_timeout: float = 30.0


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _number(d: dict, key: str, cast, default):
    if key not in d or d[key] is None:
        return default
    try:
        return cast(d[key])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value for {key}: {d[key]!r}") from e


def _string(d: dict, key: str, default: str = "") -> str:
    value = d.get(key)
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        raise ConfigError(f"invalid value for {key}: {value!r}")
    return str(value)


def _parse_paths(items) -> list[PathConfig]:
    if items is None:
        return []
    if isinstance(items, str):
        items = _split_list(items)
    paths = []
    for item in items:
        if isinstance(item, str):
            paths.append(PathConfig(path=item))
        elif isinstance(item, dict) and item.get("path"):
            paths.append(PathConfig(path=item["path"], prefix=_string(item, "prefix")))
        else:
            raise ConfigError(f"invalid path entry: {item!r}")
    return paths


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamer",
        description="Tail log files and publish every line to NATS",
    )
    parser.add_argument(
        "-c", "--config", default=None,
        help="Path to a YAML or JSON configuration file",
    )
    parser.add_argument("--prefix", default=None, help="Subject prefix for every file")
    parser.add_argument(
        "--report-sec", type=int, default=None,
        help="Seconds between stats records (0 disables reporting)",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    parser.add_argument(
        "--nats-server", action="append", default=None, dest="nats_servers",
        help="NATS server URL; may be repeated",
    )
    parser.add_argument("paths", nargs="*", help="Additional file paths or glob patterns")
    return parser


def load_yaml_config(path: str | None) -> dict:
    """Load the configuration file. Returns an empty dict if no path is given."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"config file {path} not found") from e
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    logger.info("Loaded config from %s", path)
    return data


def _apply_env(data: dict, environ) -> dict:
    """Overlay STREAMER_* environment variables onto the file data."""
    data = dict(data)
    nats = dict(data.get("nats_conf") or {})
    log = dict(data.get("log_conf") or {})

    def env(name: str):
        return environ.get(ENV_PREFIX + name)

    for key in ("prefix", "separator", "report_sec", "poll_interval", "missing_timeout", "paths"):
        value = env(key.upper())
        if value is not None:
            data[key] = value
    if env("LOG_LEVEL") is not None:
        log["log_level"] = env("LOG_LEVEL")
    if env("LOG_FILE") is not None:
        log["log_file"] = env("LOG_FILE")
    if env("NATS_SERVERS") is not None:
        nats["servers"] = env("NATS_SERVERS")
    for key in ("user", "password", "token"):
        value = env("NATS_" + key.upper())
        if value is not None:
            nats[key] = value

    data["nats_conf"] = nats
    data["log_conf"] = log
    return data


def _apply_cli(data: dict, args: argparse.Namespace) -> dict:
    data = dict(data)
    if args.prefix is not None:
        data["prefix"] = args.prefix
    if args.report_sec is not None:
        data["report_sec"] = args.report_sec
    if args.log_level is not None:
        data["log_conf"] = {**data.get("log_conf", {}), "log_level": args.log_level}
    if args.nats_servers:
        data["nats_conf"] = {**data.get("nats_conf", {}), "servers": args.nats_servers}
    if args.paths:
        data["paths"] = _parse_paths(data.get("paths")) + _parse_paths(args.paths)
    return data


def config_from_dict(data: dict) -> Config:
    """Build and validate a Config from a merged settings dict."""
    paths = data.get("paths")
    if not (isinstance(paths, list) and all(isinstance(p, PathConfig) for p in paths)):
        paths = _parse_paths(paths)

    config = Config(
        nats=NatsConfig.from_dict(data.get("nats_conf") or {}),
        log=LogConfig.from_dict(data.get("log_conf") or {}),
        prefix=_string(data, "prefix"),
        separator=_string(data, "separator", Config.separator),
        paths=paths,
        report_sec=_number(data, "report_sec", int, Config.report_sec),
        poll_interval=_number(data, "poll_interval", float, Config.poll_interval),
        missing_timeout=_number(data, "missing_timeout", float, Config.missing_timeout),
    )
    validate(config)
    return config


def validate(config: Config):
    if not config.paths:
        raise ConfigError("no paths configured")
    if config.report_sec < 0:
        raise ConfigError("report_sec must be >= 0")
    if config.poll_interval <= 0:
        raise ConfigError("poll_interval must be > 0")
    if config.missing_timeout <= 0:
        raise ConfigError("missing_timeout must be > 0")
    if config.log.level not in LOG_LEVELS:
        raise ConfigError(f"unknown log level {config.log.level!r}")
    if not config.nats.servers:
        raise ConfigError("no NATS servers configured")


def load_config(argv: list[str] | None = None, environ=None) -> Config:
    """Build Config from defaults <- config file <- env vars <- CLI args (highest priority)."""
    if environ is None:
        environ = os.environ
    args = build_cli_parser().parse_args(argv)

    data = load_yaml_config(args.config or environ.get(ENV_PREFIX + "CONFIG"))
    data = _apply_env(data, environ)
    data = _apply_cli(data, args)
    return config_from_dict(data)
