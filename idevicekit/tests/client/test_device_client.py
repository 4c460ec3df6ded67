from __future__ import annotations

import plistlib
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from idevicekit.core.errors import (
    DecodeError,
    InvalidIdentifierError,
    ProcessError,
    ProcessTimeoutError,
    UnsupportedIdentifierError,
)
from idevicekit.client.device_client import DeviceClient
from idevicekit.model.properties import ABSENT
from idevicekit.model.tools import ToolCatalog
from idevicekit.process.options import ProcessOptions
from idevicekit.process.runner import ProcessResult

UDID = "0123456789abcdef0123456789abcdef01234567"
SERIAL = "ABCDEFGH-0123456789ABCDEF"


def _xml(value) -> str:
    return plistlib.dumps(value, fmt=plistlib.FMT_XML).decode("utf-8")


class FakeRunner:
    """
    Runner stub:
    - records (program, args) for every call
    - returns staged stdout per program (or raises a staged error)
    """
    def __init__(self, outputs: Optional[Dict[str, object]] = None):
        self.outputs: Dict[str, object] = dict(outputs or {})
        self.calls: List[Tuple[str, List[str]]] = []
        self.options: List[Optional[ProcessOptions]] = []

    def run(self, program: str, args: Sequence[str], options: Optional[ProcessOptions] = None) -> ProcessResult:
        self.calls.append((program, list(args)))
        self.options.append(options)
        out = self.outputs.get(program, "")
        if isinstance(out, Exception):
            raise out
        return ProcessResult(stdout=str(out), stderr="")


def _client(outputs=None, **kw) -> Tuple[DeviceClient, FakeRunner]:
    runner = FakeRunner(outputs)
    return DeviceClient(runner=runner, **kw), runner


# -----------------------------
# Validation gate
# -----------------------------

@pytest.mark.parametrize(
    "call",
    [
        lambda c, s: c.get_properties(s),
        lambda c, s: c.get_packages(s),
        lambda c, s: c.diagnostics(s),
        lambda c, s: c.reboot(s),
        lambda c, s: c.shutdown(s),
        lambda c, s: c.enter_recovery(s),
        lambda c, s: c.exit_recovery(s),
        lambda c, s: c.name(s),
        lambda c, s: c.name(s, "New"),
        lambda c, s: c.get_resolution(s),
        lambda c, s: c.get_storage(s),
        lambda c, s: c.get_battery(s),
        lambda c, s: c.collect_logs(s),
        lambda c, s: c.syslog(s),
    ],
)
@pytest.mark.parametrize("bad", ["", "not-a-serial", UDID.upper(), "abcdefgh-0123456789abcdef"])
def test_invalid_identifier_never_spawns(call, bad):
    spawned = []
    client, runner = _client(spawn=lambda argv: spawned.append(argv))
    with pytest.raises(InvalidIdentifierError):
        call(client, bad)
    assert runner.calls == []
    assert spawned == []


# -----------------------------
# Enumeration
# -----------------------------

def test_list_devices_filters_and_keeps_order():
    stdout = f"{SERIAL}\n\ngarbage line\n  {UDID}  \nERROR: usbmuxd\n"
    client, runner = _client({"idevice_id": stdout})
    assert client.list_devices() == [SERIAL, UDID]
    assert runner.calls == [("idevice_id", ["-l"])]


def test_list_devices_empty():
    client, _ = _client({"idevice_id": ""})
    assert client.list_devices() == []


# -----------------------------
# Properties
# -----------------------------

def test_get_properties_args_and_decode():
    client, runner = _client({"ideviceinfo": _xml({"DeviceName": "Test iPhone", "ProductVersion": "17.2"})})
    props = client.get_properties(UDID)
    assert props["DeviceName"] == "Test iPhone"
    assert props.field("Missing") is ABSENT
    assert runner.calls == [("ideviceinfo", ["-u", UDID, "-x"])]


def test_get_properties_simple_and_domain():
    client, runner = _client({"ideviceinfo": _xml({})})
    client.get_properties(UDID, simple=True, domain="com.apple.disk_usage")
    assert runner.calls[0][1] == ["-u", UDID, "-x", "-s", "-q", "com.apple.disk_usage"]


def test_get_properties_malformed_output_raises_decode_error():
    client, _ = _client({"ideviceinfo": "ERROR: Could not connect to lockdownd"})
    with pytest.raises(DecodeError):
        client.get_properties(UDID)


def test_process_error_propagates_unchanged():
    err = ProcessError("boom", program="ideviceinfo", returncode=255, stdout="", stderr="No device found")
    client, _ = _client({"ideviceinfo": err})
    with pytest.raises(ProcessError) as ei:
        client.get_properties(UDID)
    assert ei.value is err


def test_timeout_error_propagates():
    err = ProcessTimeoutError("slow", program="ideviceinfo")
    client, _ = _client({"ideviceinfo": err})
    with pytest.raises(ProcessTimeoutError):
        client.get_storage(UDID)


# -----------------------------
# Packages
# -----------------------------

PACKAGES = [
    {"CFBundleIdentifier": "com.example.one", "CFBundleName": "One"},
    {"CFBundleIdentifier": "com.example.two"},
]


@pytest.mark.parametrize(
    "scope, extra",
    [
        ("user", []),
        ("system", ["-o", "list_system"]),
        ("all", ["-o", "list_all"]),
    ],
)
def test_get_packages_scope_args(scope, extra):
    client, runner = _client({"ideviceinstaller": _xml(PACKAGES)})
    assert client.get_packages(UDID, scope) == ["com.example.one", "com.example.two"]
    args = runner.calls[0][1]
    assert args == ["-u", UDID, "-l", "-o", "xml"] + extra


def test_get_packages_system_never_adds_all():
    client, runner = _client({"ideviceinstaller": _xml([])})
    client.get_packages(UDID, scope="system")
    args = runner.calls[0][1]
    assert "list_system" in args
    assert "list_all" not in args


def test_get_packages_unknown_scope_rejected_before_spawn():
    client, runner = _client()
    with pytest.raises(ValueError):
        client.get_packages(UDID, scope="everything")
    assert runner.calls == []


def test_get_packages_requires_array():
    client, _ = _client({"ideviceinstaller": _xml({"not": "a list"})})
    with pytest.raises(DecodeError):
        client.get_packages(UDID)


def test_get_packages_skips_descriptor_without_bundle_id():
    client, _ = _client({"ideviceinstaller": _xml([{"CFBundleName": "x"}, {"CFBundleIdentifier": "com.a"}])})
    assert client.get_packages(UDID) == ["com.a"]


# -----------------------------
# Diagnostics / power
# -----------------------------

def test_diagnostics_defaults():
    client, runner = _client({"idevicediagnostics": _xml({"Diagnostics": {"GasGauge": {"CycleCount": 12}}})})
    out = client.diagnostics(UDID)
    assert out["Diagnostics"]["GasGauge"]["CycleCount"] == 12
    assert runner.calls == [("idevicediagnostics", ["-u", UDID, "diagnostics", "All"])]


def test_diagnostics_custom_command_without_key():
    client, runner = _client({"idevicediagnostics": _xml({})})
    client.diagnostics(UDID, command="ioregentry", key=None)
    assert runner.calls[0][1] == ["-u", UDID, "ioregentry"]


def test_reboot_and_shutdown():
    client, runner = _client()
    assert client.reboot(UDID) is True
    assert client.shutdown(SERIAL) is True
    assert runner.calls == [
        ("idevicediagnostics", ["restart", "-u", UDID]),
        ("idevicediagnostics", ["shutdown", "-u", SERIAL]),
    ]


def test_enter_recovery():
    client, runner = _client()
    assert client.enter_recovery(UDID) is True
    assert runner.calls == [("ideviceenterrecovery", [UDID])]


def test_exit_recovery_derives_hex_ecid():
    client, runner = _client()
    assert client.exit_recovery(SERIAL) is True
    assert runner.calls == [("irecovery", ["-n", "-i", "0x0123456789abcdef"])]


def test_exit_recovery_rejects_udid_without_spawn():
    client, runner = _client()
    with pytest.raises(UnsupportedIdentifierError):
        client.exit_recovery(UDID)
    assert runner.calls == []


# -----------------------------
# Naming
# -----------------------------

def test_get_name_trims_stdout():
    client, runner = _client({"idevicename": "  Sam's iPhone\n"})
    assert client.get_name(UDID) == "Sam's iPhone"
    assert runner.calls == [("idevicename", ["-u", UDID])]


def test_set_name_appends_argument():
    client, runner = _client({"idevicename": "device name set to 'Lab 7'\n"})
    assert client.set_name(UDID, "Lab 7") == "device name set to 'Lab 7'"
    assert runner.calls == [("idevicename", ["-u", UDID, "Lab 7"])]


# -----------------------------
# Derived views
# -----------------------------

def test_get_resolution_floor_branch():
    client, runner = _client({"ideviceinfo": _xml({"ScreenWidth": 750, "ScreenHeight": 1334, "ScreenScaleFactor": 2})})
    res = client.get_resolution(UDID)
    assert (res.width, res.height, res.scale) == (750, 1334, 2)
    assert (res.points.width, res.points.height) == (375, 667)
    assert runner.calls[0][1] == ["-u", UDID, "-x", "-q", "com.apple.mobile.iTunes"]


def test_get_resolution_plus_override():
    client, _ = _client({"ideviceinfo": _xml({"ScreenWidth": 1080, "ScreenHeight": 1920, "ScreenScaleFactor": 3})})
    res = client.get_resolution(UDID)
    assert (res.points.width, res.points.height) == (414, 736)


def test_get_storage():
    client, runner = _client({"ideviceinfo": _xml({"TotalDataCapacity": 1000, "TotalDataAvailable": 500})})
    st = client.get_storage(UDID)
    assert st.size == 1000 and st.free == 500 and st.used == 500
    assert st.free_percent == 500 * 100 / 1002
    assert runner.calls[0][1][-2:] == ["-q", "com.apple.disk_usage"]


def test_get_battery():
    client, runner = _client({"ideviceinfo": _xml({"BatteryCurrentCapacity": 64, "BatteryIsCharging": False})})
    b = client.get_battery(UDID)
    assert b.level == 64
    assert b.as_dict() == {"BatteryCurrentCapacity": 64, "BatteryIsCharging": False, "level": 64}
    assert runner.calls[0][1][-2:] == ["-q", "com.apple.mobile.battery"]


# -----------------------------
# Crash logs
# -----------------------------

def test_collect_logs_creates_dir_then_pulls_reports():
    client, runner = _client({"mktemp": "/tmp/tmp.AbC123\n"})
    assert client.collect_logs(UDID) == "/tmp/tmp.AbC123"
    assert runner.calls == [
        ("mktemp", ["-d"]),
        ("idevicecrashreport", ["-u", UDID, "/tmp/tmp.AbC123"]),
    ]


def test_collect_logs_with_filter():
    client, runner = _client({"mktemp": "/tmp/x\n"})
    client.collect_logs(SERIAL, filter="SpringBoard")
    assert runner.calls[1] == ("idevicecrashreport", ["-u", SERIAL, "-f", "SpringBoard", "/tmp/x"])


def test_collect_logs_mktemp_failure_stops_before_crash_report():
    client, runner = _client({"mktemp": ProcessError("no tmp", program="mktemp", returncode=1)})
    with pytest.raises(ProcessError):
        client.collect_logs(UDID)
    assert [c[0] for c in runner.calls] == ["mktemp"]


# -----------------------------
# Tool catalog / options
# -----------------------------

def test_tool_overrides_are_used():
    runner = FakeRunner({"/opt/bin/idevice_id": UDID + "\n"})
    client = DeviceClient(runner=runner, tools=ToolCatalog({"enumerate": "/opt/bin/idevice_id"}))
    assert client.list_devices() == [UDID]


def test_options_are_forwarded_to_runner():
    opts = ProcessOptions(timeout_s=3.0)
    client, runner = _client({"idevicename": "x"}, options=opts)
    client.get_name(UDID)
    assert runner.options == [opts]


# -----------------------------
# Async submission
# -----------------------------

def test_submit_runs_operation_on_pool():
    client, runner = _client({"idevicename": "Pool"})
    with client:
        fut = client.submit("get_name", UDID)
        assert fut.result(timeout=5) == "Pool"


def test_submit_propagates_validation_error():
    client, runner = _client()
    with client:
        fut = client.submit("reboot", "bad")
        with pytest.raises(InvalidIdentifierError):
            fut.result(timeout=5)
    assert runner.calls == []


@pytest.mark.parametrize("name", ["_run", "submit", "close", "does_not_exist", "tools"])
def test_submit_rejects_non_operations(name):
    client, _ = _client()
    with pytest.raises(AttributeError):
        client.submit(name)


def test_default_classifier_is_resolved_at_construction(monkeypatch):
    from idevicekit.client import device_client as mod

    loaded = []
    real = mod.PatternClassifier.from_yaml

    def _spy(path):
        loaded.append(path)
        return real(path)

    monkeypatch.setattr(mod.PatternClassifier, "from_yaml", staticmethod(_spy))
    client, _ = _client()
    assert loaded == [mod.default_patterns_path()]
    assert loaded[0].is_absolute()
    assert isinstance(client._classifier, mod.PatternClassifier)


def test_explicit_classifier_skips_default_load(monkeypatch):
    from idevicekit.client import device_client as mod

    def _fail(path):
        raise AssertionError("default patterns should not be loaded")

    monkeypatch.setattr(mod.PatternClassifier, "from_yaml", staticmethod(_fail))
    marker = object()
    client, _ = _client(classifier=marker)
    assert client._classifier is marker


def test_max_workers_default_and_explicit():
    assert _client()[0]._max_workers == 8
    assert _client(max_workers=2)[0]._max_workers == 2
