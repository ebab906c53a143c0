import subprocess
from pathlib import Path

import pytest

from syno_hdd_db.config import Settings
from syno_hdd_db.errors import NoDrivesFoundError
from syno_hdd_db.models.drive import DriveRecord
from syno_hdd_db.services import inventory

HDPARM_WD = """
/dev/sata1:

 Model=WDC WD40EFRX-68N32N0, FwRev=82.00A82, SerialNo=WD-WCC7K0XXXXXX
 Config={ HardSect NotMFM HdSw>15uSec SpinMotCtl Fixed DTR>5Mbs FmtGapReq }
 RawCHS=16383/16/63, TrkSize=0, SectSize=0, ECCbytes=0
"""

HDPARM_SEAGATE = """
/dev/sdb:

 Model=ST4000VN008-2DR166, FwRev=SC60, SerialNo=ZDHXXXXX
"""

SMARTCTL_SAS = """
smartctl 6.5 (build date Sep 26 2022) [x86_64-linux-4.4.302+] (local build)

=== START OF INFORMATION SECTION ===
Vendor:               SEAGATE
Product:              ST4000NM0023
Revision:             0004
User Capacity:        4,000,787,030,016 bytes [4.00 TB]
"""


def _settings(tmp_path, **overrides):
    values = {
        "dev_dir": tmp_path / "dev",
        "proc_devices_path": tmp_path / "devices",
        "nvme_class_dir": tmp_path / "nvme",
    }
    values.update(overrides)
    return Settings(**values)


def test_parse_hdparm_identity_extracts_model_and_firmware():
    record = inventory.parse_hdparm_identity(HDPARM_WD)

    assert record == DriveRecord(model="WDC WD40EFRX-68N32N0", firmware="82.00A82")


@pytest.mark.parametrize(
    "output",
    [
        "",
        "/dev/sda:\n\n HDIO_GET_IDENTITY failed: Invalid argument\n",
        " Model=, FwRev=82.00A82, SerialNo=X\n",
        " Model=WD40EFRX, FwRev=, SerialNo=X\n",
        " Model=WD40EFRX\n",
        " Model=WD40EFRX, SerialNo=X\n",
    ],
)
def test_parse_hdparm_identity_returns_none_for_incomplete_output(output):
    assert inventory.parse_hdparm_identity(output) is None


def test_parse_smartctl_identity_handles_sas_drive():
    record = inventory.parse_smartctl_identity(SMARTCTL_SAS)

    assert record is not None
    assert record.model == "ST4000NM0023"
    assert record.firmware == "0004"


def test_parse_smartctl_identity_handles_ata_drive():
    output = "Device Model:     WDC WD40EFRX-68N32N0\nFirmware Version: 82.00A82\n"

    record = inventory.parse_smartctl_identity(output)

    assert record == DriveRecord(model="WDC WD40EFRX-68N32N0", firmware="82.00A82")


def test_dedupe_collapses_identical_pairs():
    records = [
        DriveRecord(model="WD40EFRX", firmware="83.00A83"),
        DriveRecord(model="WD40EFRX", firmware="83.00A83"),
    ]

    assert inventory.dedupe(records) == [
        DriveRecord(model="WD40EFRX", firmware="83.00A83")
    ]


def test_dedupe_is_independent_of_input_order():
    a = DriveRecord(model="ST4000VN008", firmware="SC60")
    b = DriveRecord(model="WD40EFRX", firmware="83.00A83")
    c = DriveRecord(model="WD40EFRX", firmware="82.00A82")

    first = inventory.dedupe([a, b, c, b, a])
    second = inventory.dedupe([c, c, b, a])

    assert first == second
    assert len(first) == 3
    # same model, different firmware stays two inventory entries
    assert [r.firmware for r in first if r.model == "WD40EFRX"] == ["82.00A82", "83.00A83"]


def test_candidate_devices_only_accepts_whole_disks(tmp_path):
    dev = tmp_path / "dev"
    dev.mkdir()
    for name in ["sata1", "sata12", "sata1p1", "sata0", "sda", "sdab", "sda1", "sdabc", "nvme0n1", "md0"]:
        (dev / name).touch()

    names = [p.name for p in inventory.candidate_devices(dev)]

    assert names == ["sata1", "sata12", "sda", "sdab"]


def test_collect_hdds_falls_back_to_smartctl_and_dedupes(tmp_path, monkeypatch):
    """
    sata1 and sata2 hold the same WD drive, sdb answers hdparm and sdc only
    smartctl (SAS). sdd yields nothing and is skipped.
    """
    dev = tmp_path / "dev"
    dev.mkdir()
    for name in ["sata1", "sata2", "sdb", "sdc", "sdd"]:
        (dev / name).touch()

    hdparm_outputs = {
        "sata1": HDPARM_WD,
        "sata2": HDPARM_WD,
        "sdb": HDPARM_SEAGATE,
    }
    smartctl_outputs = {"sdc": SMARTCTL_SAS}

    monkeypatch.setattr(inventory, "_run_hdparm", lambda device: hdparm_outputs.get(device.name))
    monkeypatch.setattr(inventory, "_run_smartctl", lambda device: smartctl_outputs.get(device.name))

    records = inventory.collect_hdds(_settings(tmp_path))

    assert [r.key for r in records] == [
        "ST4000NM0023,0004",
        "ST4000VN008-2DR166,SC60",
        "WDC WD40EFRX-68N32N0,82.00A82",
    ]


def test_collect_nvmes_skipped_without_nvme_driver(tmp_path):
    (tmp_path / "devices").write_text("Character devices:\n  1 mem\n  4 tty\n")
    (tmp_path / "nvme" / "nvme0").mkdir(parents=True)
    (tmp_path / "nvme" / "nvme0" / "model").write_text("Samsung SSD 970 EVO Plus 1TB\n")
    (tmp_path / "nvme" / "nvme0" / "firmware_rev").write_text("2B2QEXM7\n")

    assert inventory.collect_nvmes(_settings(tmp_path)) == []


def test_collect_nvmes_trims_and_skips_incomplete_controllers(tmp_path):
    (tmp_path / "devices").write_text("Character devices:\n  1 mem\n247 nvme\n")
    nvme = tmp_path / "nvme"
    for ctrl, model, fw in [
        ("nvme0", "  Samsung SSD 970 EVO Plus 1TB          \n", "2B2QEXM7  \n"),
        ("nvme1", "  Samsung SSD 970 EVO Plus 1TB\n", "2B2QEXM7\n"),
        ("nvme2", "WD Red SN700 500GB\n", "   \n"),
    ]:
        (nvme / ctrl).mkdir(parents=True)
        (nvme / ctrl / "model").write_text(model)
        (nvme / ctrl / "firmware_rev").write_text(fw)

    records = inventory.collect_nvmes(_settings(tmp_path))

    assert records == [
        DriveRecord(model="Samsung SSD 970 EVO Plus 1TB", firmware="2B2QEXM7")
    ]


def test_collect_inventory_without_drives_raises(tmp_path, monkeypatch):
    (tmp_path / "dev").mkdir()
    settings = _settings(tmp_path)

    monkeypatch.setattr(inventory, "get_settings", lambda: settings)

    with pytest.raises(NoDrivesFoundError) as excinfo:
        inventory.collect_inventory()

    assert excinfo.value.exit_code == 2


def test_collect_inventory_without_nvme_is_not_an_error(tmp_path, monkeypatch):
    dev = tmp_path / "dev"
    dev.mkdir()
    (dev / "sata1").touch()
    settings = _settings(tmp_path)

    monkeypatch.setattr(inventory, "get_settings", lambda: settings)
    monkeypatch.setattr(inventory, "_run_hdparm", lambda device: HDPARM_WD)

    drives = inventory.collect_inventory()

    assert len(drives.hdds) == 1
    assert drives.nvmes == []


def _fake_subprocess_run(results):
    """subprocess.run stand-in; results maps the tool name to a return code or exception."""

    def fake_run(cmd, **kwargs):
        outcome = results[cmd[0]]
        if isinstance(outcome, Exception):
            raise outcome
        returncode, stdout = outcome
        if returncode and kwargs.get("check"):
            raise subprocess.CalledProcessError(returncode, cmd, output=stdout, stderr="")
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")

    return fake_run


def test_identify_drive_keeps_smartctl_output_with_disk_error_bits(monkeypatch):
    """
    smartctl sets bit 2 ("some command to the disk failed") on many SAS disks
    while still printing the identity block; the drive must not be dropped.
    """
    monkeypatch.setattr(
        inventory.subprocess,
        "run",
        _fake_subprocess_run({"hdparm": (25, ""), "smartctl": (4, SMARTCTL_SAS)}),
    )

    record = inventory.identify_drive(Path("/dev/sda"))

    assert record == DriveRecord(model="ST4000NM0023", firmware="0004")


@pytest.mark.parametrize("returncode", [1, 2, 6])
def test_identify_drive_skips_smartctl_open_failures(monkeypatch, returncode):
    monkeypatch.setattr(
        inventory.subprocess,
        "run",
        _fake_subprocess_run({"hdparm": (25, ""), "smartctl": (returncode, SMARTCTL_SAS)}),
    )

    assert inventory.identify_drive(Path("/dev/sda")) is None


def test_identify_drive_treats_timeouts_as_soft_skip(monkeypatch):
    seen_timeouts = []

    def fake_run(cmd, **kwargs):
        seen_timeouts.append(kwargs.get("timeout"))
        raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

    monkeypatch.setattr(inventory.subprocess, "run", fake_run)

    assert inventory.identify_drive(Path("/dev/sda")) is None
    assert len(seen_timeouts) == 2
    assert all(t for t in seen_timeouts)


def test_hdparm_failure_status_is_never_parsed(monkeypatch):
    monkeypatch.setattr(
        inventory.subprocess,
        "run",
        _fake_subprocess_run({"hdparm": (4, HDPARM_WD), "smartctl": FileNotFoundError()}),
    )

    assert inventory.identify_drive(Path("/dev/sda")) is None
