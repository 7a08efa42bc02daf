"""Load and validate JSON configuration files.

A configuration path is a file or a directory walked recursively for
``*.json`` files. Each file holds one object or a list of objects, each keyed
by a record type::

    [
      {"Source":   {"AmiId": "ami-123", "Region": "us-east-1", "OS": "ubuntu"}},
      {"Account":  {"Name": "prod", "AccessKeyId": "...", "SecretAccessKey": "...",
                    "OwnerId": "123456789012"}},
      {"UserData": {"Name": "base", "Bash": "apt-get -y upgrade"}},
      {"Project":  {"Name": "base-ubuntu", "Account": "prod", "UserData": "base",
                    "Cron": "0 3 * * *", "SourceFilter": {"OS": "ubuntu"}}}
    ]

Errors in one file are counted and loading moves on, so every problem is
reported in one pass.
"""

from __future__ import annotations
import json
import os
from typing import Any

from .ec2 import Account
from .engine.triggers import build_trigger
from .exceptions import ConfigurationError
from .models import Project, Source, UserData
from .utils import get_logger


class ConfigStorage:
    """Validated records keyed by name, plus the aggregate error count."""

    def __init__(self, logger=None):
        self.logger = logger or get_logger()
        self.sources: list[Source] = []
        self.accounts: dict[str, Account] = {}
        self.projects: dict[str, Project] = {}
        self.userdatas: dict[str, UserData] = {}
        self.config_errors = 0

    def add_source(self, source: Source) -> None:
        source.validate_and_set_defaults()
        self.sources.append(source)

    def add_account(self, account: Account) -> None:
        account.validate_and_set_defaults()
        self.accounts[account.name] = account

    def add_project(self, project: Project) -> None:
        project.validate_and_set_defaults(self.logger)
        if project.cron:
            build_trigger(project.cron)
        self.projects[project.name] = project

    def add_userdata(self, userdata: UserData) -> None:
        userdata.validate_and_set_defaults()
        self.userdatas[userdata.name] = userdata

    def _record_error(self, error: Exception, **context: Any) -> None:
        self.config_errors += 1
        self.logger.error(str(error), extra={"type": "Data Validation", **context})

    def parse_config(self, entry: Any, config_file: str = "") -> None:
        """Parse one ``{"<RecordType>": {...}}`` object."""
        if not isinstance(entry, dict):
            self._record_error(
                ConfigurationError(f"Invalid config entry: {entry!r}"),
                config_file=config_file,
            )
            return
        handlers = {
            "source": (Source.from_dict, self.add_source),
            "account": (Account.from_dict, self.add_account),
            "project": (Project.from_dict, self.add_project),
            "userdata": (UserData.from_dict, self.add_userdata),
        }
        for config_type, data in entry.items():
            handler = handlers.get(config_type.lower())
            if handler is None:
                self.logger.warning(
                    f"ConfigType {config_type} not defined, ignoring",
                    extra={"config_file": config_file},
                )
                continue
            build, add = handler
            try:
                add(build(data))
            except ConfigurationError as e:
                self._record_error(e, config_file=config_file, config_type=config_type)

    def parse_document(self, document: Any, config_file: str = "") -> None:
        entries = document if isinstance(document, list) else [document]
        for entry in entries:
            self.parse_config(entry, config_file)

    def process_file(self, path: str) -> None:
        if not path.lower().endswith(".json"):
            self.logger.debug(
                "Ignoring non-json file in the config directory",
                extra={"config_file": path},
            )
            return
        try:
            with open(path, encoding="utf-8") as handle:
                content = handle.read()
        except OSError as e:
            self._record_error(e, config_file=path)
            return
        if not content.strip():
            self.logger.info("Ignoring blank json file", extra={"config_file": path})
            return
        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            self._record_error(
                ConfigurationError(f"Json parsing failed: {e}"), config_file=path
            )
            return
        self.parse_document(document, path)

    def process_path(self, path: str) -> ConfigStorage:
        """Load a file or walk a directory. Returns self for chaining."""
        if os.path.isdir(path):
            for root, dirs, files in os.walk(path):
                dirs.sort()
                for filename in sorted(files):
                    self.process_file(os.path.join(root, filename))
        elif os.path.isfile(path):
            self.process_file(path)
        else:
            self._record_error(
                ConfigurationError(f"Config path not found: {path}"), config_file=path
            )
        self.check_references()
        return self

    def check_references(self) -> None:
        """Every project must name a known account and user data."""
        for project in self.projects.values():
            if project.account not in self.accounts:
                self._record_error(
                    ConfigurationError(
                        f"Project '{project.name}' references unknown Account '{project.account}'"
                    ),
                    project=project.name,
                )
            if project.user_data not in self.userdatas:
                self._record_error(
                    ConfigurationError(
                        f"Project '{project.name}' references unknown UserData '{project.user_data}'"
                    ),
                    project=project.name,
                )

    def raise_if_errors(self) -> None:
        if self.config_errors:
            self.logger.error(
                "Config validation failed",
                extra={"type": "Syntax Errors", "error_count": self.config_errors},
            )
            raise ConfigurationError(
                f"{self.config_errors} configuration error(s) found"
            )
