# idevicekit/core/context.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from idevicekit.app.config import ClientConfig
from idevicekit.app.logging_setup import configure_logging
from idevicekit.core.errors import ConfigError
from idevicekit.model.tools import ToolCatalog
from idevicekit.process.options import ProcessOptions
from idevicekit.process.runner import ProcessRunner
from idevicekit.streaming.classifier import PatternClassifier, default_patterns_path


@dataclass(frozen=True)
class ClientContext:
    config: ClientConfig
    tools: ToolCatalog
    classifier: PatternClassifier
    options: ProcessOptions
    runner: ProcessRunner

    @classmethod
    def load(
        cls,
        config: Optional[ClientConfig] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> "ClientContext":
        """
        Resolve tool catalog + classifier patterns once, up front.

        Raises ConfigError on any bad file; nothing is spawned here.
        A configured log_file is attached to the idevicekit logger first.
        """
        config = config or ClientConfig()
        if config.log_file:
            try:
                configure_logging(config.log_file, config.log_level)
            except (OSError, ValueError) as e:
                raise ConfigError(
                    "Could not set up log file.",
                    hint=str(e),
                    details={"log_file": config.log_file},
                ) from None

        tools = ToolCatalog.from_yaml(config.tools_file) if config.tools_file else ToolCatalog.default()
        classifier = PatternClassifier.from_yaml(config.patterns_file or default_patterns_path())
        options = config.process_options()

        return cls(
            config=config,
            tools=tools,
            classifier=classifier,
            options=options,
            runner=ProcessRunner(options, logger=logger),
        )
