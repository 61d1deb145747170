"""Command line entry point that loads the configuration and runs the agent."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import signal
import sys
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml

from bladeagent.agent import ComputeBladeAgent, ComputeBladeAgentConfig
from bladeagent.simulated import SimulatedHal

APP_NAME = "compute-blade-agent"
DEFAULT_CONFIG_PATH = Path("/etc/compute-blade-agent/config.yaml")
ENV_PREFIX = "BLADE"

# Keys read directly by the command, so they may come from the environment alone.
_COMMAND_KEYS = (("log", "mode"), ("listen", "grpc"))

_LOGGER_NAME = "bladeagent"


class _JsonFormatter(logging.Formatter):
    """Formats records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "level": record.levelname.lower(),
            "ts": record.created,
            "logger": record.name,
            "msg": record.getMessage(),
            "app": APP_NAME,
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _env_name(path: Sequence[str]) -> str:
    return "_".join((ENV_PREFIX, *path)).upper()


def _leaf_paths(data: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> Iterator[tuple[str, ...]]:
    for key, value in data.items():
        path = (*prefix, str(key))
        if isinstance(value, Mapping):
            yield from _leaf_paths(value, path)
        else:
            yield path


def _set_path(data: dict[str, Any], path: Sequence[str], value: Any) -> None:
    *parents, last = path
    node = data
    for key in parents:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[last] = value


def load_config(
    path: str | os.PathLike[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Read the YAML configuration and apply BLADE_* environment overrides.

    A key such as ``log.mode`` is overridden by ``BLADE_LOG_MODE``; values
    from the environment are parsed as YAML scalars. Raises
    FileNotFoundError when the file is missing and ValueError when it does
    not hold a mapping.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    environ = os.environ if environ is None else environ

    with config_path.open(encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ValueError(f"configuration in {config_path} must be a mapping")

    paths = dict.fromkeys(_leaf_paths(loaded))
    paths.update(dict.fromkeys(_COMMAND_KEYS))
    for key_path in paths:
        raw = environ.get(_env_name(key_path))
        if raw is not None:
            _set_path(loaded, key_path, yaml.safe_load(raw))
    return loaded


def configure_logging(mode: str) -> logging.Logger:
    """Configure the package logger for 'development' or 'production'."""
    handler = logging.StreamHandler(sys.stderr)
    if mode == "development":
        level = logging.DEBUG
        handler.setFormatter(
            logging.Formatter(
                f"%(asctime)s\t%(levelname)s\t%(name)s\t%(message)s\tapp={APP_NAME}"
            )
        )
    elif mode == "production":
        level = logging.INFO
        handler.setFormatter(_JsonFormatter())
    else:
        raise ValueError(f"invalid log.mode: {mode}")

    logger = logging.getLogger(_LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


async def _serve(agent: ComputeBladeAgent, logger: logging.Logger) -> None:
    loop = asyncio.get_running_loop()
    task = asyncio.create_task(agent.run())

    def stop(sig: signal.Signals) -> None:
        logger.info("signal %s received", sig.name)
        task.cancel()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop, sig)
            installed.append(sig)
    try:
        logger.info("Starting agent")
        await task
    except asyncio.CancelledError:
        if not task.cancelled():
            raise
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the agent until interrupted; return the process exit code."""
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Run the compute blade agent.")
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="path of the YAML configuration file",
    )
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"{APP_NAME}: failed to read configuration: {exc}", file=sys.stderr)
        return 1

    log_config = config.get("log")
    mode = log_config.get("mode") if isinstance(log_config, Mapping) else None
    try:
        logger = configure_logging(str(mode) if mode is not None else "")
    except ValueError as exc:
        print(f"{APP_NAME}: {exc}", file=sys.stderr)
        return 1

    try:
        agent_config = ComputeBladeAgentConfig.from_dict(config)
    except (TypeError, ValueError, AttributeError) as exc:
        logger.error("Failed to load configuration: %s", exc)
        return 1

    logger.info("Bootstrapping %s", APP_NAME)
    try:
        hal = SimulatedHal(agent_config.hal_opts)
        agent = ComputeBladeAgent(agent_config, hal)
    except (ValueError, OSError) as exc:
        logger.error("Failed to create agent: %s", exc)
        return 1

    try:
        asyncio.run(_serve(agent, logger))
    except Exception:
        logger.exception("Failed to run agent")
        logger.critical("Exiting")
        return 1
    logger.info("Exiting")
    return 0


if __name__ == "__main__":
    sys.exit(main())