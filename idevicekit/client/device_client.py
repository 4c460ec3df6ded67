# idevicekit/client/device_client.py
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, List, Optional

from idevicekit.core.context import ClientContext
from idevicekit.core.errors import DecodeError
from idevicekit.interfaces.log_sink import LogSink
from idevicekit.model.device import BatteryDetails, ScreenDetails, StorageDetails
from idevicekit.model.identifier import (
    DeviceIdentifier,
    is_valid_identifier,
    recovery_device_id,
    require_identifier,
)
from idevicekit.model.properties import DeviceProperties, decode_plist
from idevicekit.model.tools import ToolCatalog
from idevicekit.process.options import ProcessOptions
from idevicekit.process.runner import ProcessResult, ProcessRunner, Runner
from idevicekit.streaming.classifier import LineClassifier, PatternClassifier, default_patterns_path
from idevicekit.streaming.session import LogStreamSession, Spawner

DOMAIN_ITUNES = "com.apple.mobile.iTunes"
DOMAIN_DISK_USAGE = "com.apple.disk_usage"
DOMAIN_BATTERY = "com.apple.mobile.battery"

DEFAULT_MAX_WORKERS = 8

PACKAGE_SCOPES = ("user", "system", "all")
_SCOPE_ARGS = {
    "user": [],
    "system": ["-o", "list_system"],
    "all": ["-o", "list_all"],
}


class DeviceClient:
    """
    User-facing API over the libimobiledevice command-line tools.

    Every per-device call validates the identifier first and raises
    InvalidIdentifierError without spawning anything. Process failures and
    decode failures propagate unchanged.
    """

    def __init__(
        self,
        context: Optional[ClientContext] = None,
        *,
        runner: Optional[Runner] = None,
        tools: Optional[ToolCatalog] = None,
        classifier: Optional[LineClassifier] = None,
        options: Optional[ProcessOptions] = None,
        spawn: Optional[Spawner] = None,
        max_workers: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._log = logger or logging.getLogger(__name__)

        if context is not None:
            runner = runner or context.runner
            tools = tools or context.tools
            classifier = classifier or context.classifier
            options = options or context.options
            if max_workers is None:
                max_workers = context.config.max_workers

        self._options = options or ProcessOptions()
        self._runner: Runner = runner or ProcessRunner(self._options, logger=self._log)
        self._tools = tools or ToolCatalog.default()
        if classifier is None:
            classifier = PatternClassifier.from_yaml(default_patterns_path())
        self._classifier: LineClassifier = classifier
        self._spawn = spawn
        self._max_workers = int(max_workers) if max_workers is not None else DEFAULT_MAX_WORKERS
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def tools(self) -> ToolCatalog:
        return self._tools

    # ---------------- helpers ----------------
    def _run(self, role: str, args: List[str]) -> ProcessResult:
        return self._runner.run(self._tools.program(role), args, self._options)

    # ---------------- enumeration ----------------
    def list_devices(self) -> List[DeviceIdentifier]:
        out = self._run("enumerate", ["-l"])
        devices: List[DeviceIdentifier] = []
        for line in out.stdout.split("\n"):
            token = line.strip()
            if is_valid_identifier(token):
                devices.append(token)
        return devices

    # ---------------- properties ----------------
    def get_properties(
        self,
        identifier: DeviceIdentifier,
        *,
        simple: bool = False,
        domain: Optional[str] = None,
    ) -> DeviceProperties:
        require_identifier(identifier)
        args = ["-u", identifier, "-x"]
        if simple:
            args.append("-s")
        if domain:
            args += ["-q", domain]

        out = self._run("info", args)
        return DeviceProperties.from_plist(out.stdout, encoding=self._options.encoding)

    def get_packages(self, identifier: DeviceIdentifier, scope: str = "user") -> List[str]:
        require_identifier(identifier)
        if scope not in _SCOPE_ARGS:
            raise ValueError(f"scope must be one of {PACKAGE_SCOPES}, got {scope!r}")

        args = ["-u", identifier, "-l", "-o", "xml"] + _SCOPE_ARGS[scope]
        out = self._run("installer", args)

        packages = decode_plist(out.stdout, encoding=self._options.encoding)
        if not isinstance(packages, list):
            raise DecodeError(
                "Package listing is not a property list array.",
                details={"type": type(packages).__name__},
            )

        bundle_ids: List[str] = []
        for entry in packages:
            if not isinstance(entry, dict):
                raise DecodeError(
                    "Package descriptor is not a dictionary.",
                    details={"entry": repr(entry)[:200]},
                )
            bundle_id = entry.get("CFBundleIdentifier")
            if bundle_id is None:
                self._log.debug("PACKAGE_WITHOUT_BUNDLE_ID keys=%s", sorted(entry))
                continue
            bundle_ids.append(bundle_id)
        return bundle_ids

    def diagnostics(
        self,
        identifier: DeviceIdentifier,
        command: str = "diagnostics",
        key: Optional[str] = "All",
    ) -> Any:
        require_identifier(identifier)
        args = ["-u", identifier, command]
        if key:
            args.append(key)
        out = self._run("diagnostics", args)
        return decode_plist(out.stdout, encoding=self._options.encoding)

    # ---------------- power / recovery ----------------
    def reboot(self, identifier: DeviceIdentifier) -> bool:
        require_identifier(identifier)
        self._log.info("DEVICE_REBOOT identifier=%s", identifier)
        self._run("diagnostics", ["restart", "-u", identifier])
        return True

    def shutdown(self, identifier: DeviceIdentifier) -> bool:
        require_identifier(identifier)
        self._log.info("DEVICE_SHUTDOWN identifier=%s", identifier)
        self._run("diagnostics", ["shutdown", "-u", identifier])
        return True

    def enter_recovery(self, identifier: DeviceIdentifier) -> bool:
        require_identifier(identifier)
        self._log.info("DEVICE_ENTER_RECOVERY identifier=%s", identifier)
        self._run("enter_recovery", [identifier])
        return True

    def exit_recovery(self, identifier: DeviceIdentifier) -> bool:
        ecid = recovery_device_id(identifier)
        self._log.info("DEVICE_EXIT_RECOVERY identifier=%s ecid=%s", identifier, ecid)
        self._run("recovery", ["-n", "-i", ecid])
        return True

    # ---------------- naming ----------------
    def name(self, identifier: DeviceIdentifier, new_name: Optional[str] = None) -> str:
        require_identifier(identifier)
        args = ["-u", identifier]
        if new_name is not None:
            args.append(new_name)
        return self._run("name", args).stdout.strip()

    def get_name(self, identifier: DeviceIdentifier) -> str:
        return self.name(identifier)

    def set_name(self, identifier: DeviceIdentifier, new_name: str) -> str:
        return self.name(identifier, new_name)

    # ---------------- derived views ----------------
    def get_resolution(self, identifier: DeviceIdentifier) -> ScreenDetails:
        props = self.get_properties(identifier, domain=DOMAIN_ITUNES)
        return ScreenDetails.from_properties(props)

    def get_storage(self, identifier: DeviceIdentifier) -> StorageDetails:
        props = self.get_properties(identifier, domain=DOMAIN_DISK_USAGE)
        return StorageDetails.from_properties(props)

    def get_battery(self, identifier: DeviceIdentifier) -> BatteryDetails:
        props = self.get_properties(identifier, domain=DOMAIN_BATTERY)
        return BatteryDetails.from_properties(props)

    # ---------------- crash logs ----------------
    def collect_logs(self, identifier: DeviceIdentifier, filter: Optional[str] = None) -> str:
        """
        Pull crash reports into a fresh temporary directory and return its path.
        The directory is owned by the caller; nothing cleans it up.
        """
        require_identifier(identifier)
        tmp_dir = self._run("mktemp", ["-d"]).stdout.strip()

        args = ["-u", identifier]
        if filter:
            args += ["-f", filter]
        args.append(tmp_dir)

        self._run("crash_report", args)
        self._log.info("CRASH_LOGS_COLLECTED identifier=%s dir=%s", identifier, tmp_dir)
        return tmp_dir

    # ---------------- streaming ----------------
    def syslog(self, identifier: DeviceIdentifier, sink: Optional[LogSink] = None) -> LogStreamSession:
        """
        Start a syslog capture. Best-effort: unparseable lines are dropped.

        Deprecated in intent: classification of arbitrary device log formats
        is fragile.
        """
        require_identifier(identifier)
        session = LogStreamSession(
            identifier,
            classifier=self._classifier,
            program=self._tools.program("syslog"),
            encoding=self._options.encoding,
            spawn=self._spawn,
            logger=self._log,
        )
        if sink is not None:
            session.subscribe_sink(sink)
        return session.start()

    # ---------------- concurrency ----------------
    def submit(self, operation: str, *args: Any, **kwargs: Any) -> Future:
        """Run any public operation on the client's worker pool."""
        fn = getattr(self, operation, None)
        if operation.startswith("_") or operation in ("submit", "close") or not callable(fn):
            raise AttributeError(f"Unknown DeviceClient operation '{operation}'")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="idevicekit",
            )
        return self._executor.submit(fn, *args, **kwargs)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "DeviceClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
