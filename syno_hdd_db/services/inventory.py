import logging
import re
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

from syno_hdd_db.config import Settings, get_settings
from syno_hdd_db.errors import NoDrivesFoundError
from syno_hdd_db.models.drive import DriveInventory, DriveRecord

logger = logging.getLogger(__name__)

# sata1 .. sata999 (DSM naming on newer models) and sda .. sdzz (generic SCSI)
_SATA_DEVICE_PATTERN = re.compile(r"sata[1-9][0-9]{0,2}")
_SCSI_DEVICE_PATTERN = re.compile(r"sd[a-z]{1,2}")

# "Device Model:" for ATA drives, "Product:" for SAS drives
_SMARTCTL_MODEL_PATTERN = re.compile(
    r"^\s*(?:Device Model|Product)\s*:\s*(.+?)\s*$", re.MULTILINE
)
_SMARTCTL_FIRMWARE_PATTERN = re.compile(
    r"^\s*(?:Firmware Version|Revision)\s*:\s*(.+?)\s*$", re.MULTILINE
)

# bit 0: command line did not parse, bit 1: device open failed
_SMARTCTL_FAILURE_BITS = 0b11

# hdparm/smartctl can hang on a disk that does not respond
_TOOL_TIMEOUT_SECONDS = 30


def _clean(value: str) -> str:
    return value.strip().strip("\"'").strip()


def parse_hdparm_identity(output: str) -> Optional[DriveRecord]:
    """
    Extract model and firmware from `hdparm -i` output.

    The interesting line looks like

        Model=WDC WD40EFRX-68N32N0, FwRev=82.00A82, SerialNo=WD-WCC7K0XXXXXX

    Returns None if the line is missing, malformed or one of both values is
    empty.
    """
    for line in output.splitlines():
        if "Model=" not in line:
            continue

        fields = line.split(",")
        if len(fields) < 2:
            return None

        pairs = []
        for field in fields[:2]:
            key, sep, value = field.partition("=")
            if not sep:
                return None
            pairs.append((key.strip(), _clean(value)))

        (model_key, model), (fw_key, firmware) = pairs
        if model_key != "Model" or fw_key != "FwRev":
            return None
        if not model or not firmware:
            return None
        return DriveRecord(model=model, firmware=firmware)

    return None


def parse_smartctl_identity(output: str) -> Optional[DriveRecord]:
    """Extract model and firmware from `smartctl -i` output (ATA or SAS)."""
    model_match = _SMARTCTL_MODEL_PATTERN.search(output)
    firmware_match = _SMARTCTL_FIRMWARE_PATTERN.search(output)
    if not model_match or not firmware_match:
        return None

    model = _clean(model_match.group(1))
    firmware = _clean(firmware_match.group(1))
    if not model or not firmware:
        return None
    return DriveRecord(model=model, firmware=firmware)


def _run_tool(cmd: List[str], failure_mask: int = -1) -> Optional[str]:
    """
    Run a drive query and return its stdout, or None on failure.

    Only exit status bits in failure_mask count as failure; with the default
    every non-zero status does.
    """
    try:
        result = subprocess.run(
            cmd,
            check=True,
            capture_output=True,
            text=True,
            timeout=_TOOL_TIMEOUT_SECONDS,
        )
    except FileNotFoundError:
        logger.debug("%s binary not found, skipping %s", cmd[0], cmd[-1])
        return None
    except subprocess.TimeoutExpired:
        logger.debug("%s timed out for %s, skipping", cmd[0], cmd[-1])
        return None
    except subprocess.CalledProcessError as exc:
        if exc.returncode < 0 or exc.returncode & failure_mask or not exc.stdout:
            logger.debug("%s failed for %s: %s", cmd[0], cmd[-1], exc.stderr)
            return None
        return exc.stdout

    return result.stdout


def _run_hdparm(device: Path) -> Optional[str]:
    return _run_tool(["hdparm", "-i", str(device)])


def _run_smartctl(device: Path) -> Optional[str]:
    # smartctl exit status is a bitmask; bits 2+ report disk or SMART
    # problems but the identity block is still printed
    return _run_tool(["smartctl", "-i", str(device)], failure_mask=_SMARTCTL_FAILURE_BITS)


def identify_drive(device: Path) -> Optional[DriveRecord]:
    """
    Query a single block device for its identity.

    hdparm is asked first; SAS drives do not answer ATA IDENTIFY, so smartctl
    is used as a fallback.
    """
    output = _run_hdparm(device)
    record = parse_hdparm_identity(output) if output else None
    if record is not None:
        return record

    output = _run_smartctl(device)
    record = parse_smartctl_identity(output) if output else None
    if record is None:
        logger.debug("No model/firmware for %s, skipping", device)
    return record


def candidate_devices(dev_dir: Path) -> List[Path]:
    """sata<N> devices first, then sd<x>; partitions are ignored."""
    if not dev_dir.is_dir():
        return []

    names = sorted(entry.name for entry in dev_dir.iterdir())
    sata = [n for n in names if _SATA_DEVICE_PATTERN.fullmatch(n)]
    scsi = [n for n in names if _SCSI_DEVICE_PATTERN.fullmatch(n)]
    return [dev_dir / name for name in sata + scsi]


def dedupe(records: Iterable[DriveRecord]) -> List[DriveRecord]:
    """Sort by the literal "model,firmware" key and drop exact duplicates."""
    unique: List[DriveRecord] = []
    for record in sorted(records, key=lambda r: r.key):
        if not unique or unique[-1].key != record.key:
            unique.append(record)
    return unique


def collect_hdds(settings: Settings) -> List[DriveRecord]:
    records = []
    for device in candidate_devices(settings.dev_dir):
        record = identify_drive(device)
        if record is not None:
            records.append(record)
    return dedupe(records)


def _nvme_driver_loaded(proc_devices: Path) -> bool:
    try:
        return "nvme" in proc_devices.read_text(encoding="utf-8")
    except OSError:
        return False


def _read_attribute(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return ""


def collect_nvmes(settings: Settings) -> List[DriveRecord]:
    """
    Read model and firmware_rev of every NVMe controller from sysfs.

    NVMe is optional hardware: without the nvme driver, or without any
    controller, an empty list is returned.
    """
    if not _nvme_driver_loaded(settings.proc_devices_path):
        return []
    if not settings.nvme_class_dir.is_dir():
        return []

    records = []
    for controller in sorted(settings.nvme_class_dir.iterdir()):
        model = _read_attribute(controller / "model")
        firmware = _read_attribute(controller / "firmware_rev")
        if model and firmware:
            records.append(DriveRecord(model=model, firmware=firmware))
        else:
            logger.debug("Incomplete NVMe attributes in %s, skipping", controller)
    return dedupe(records)


def collect_inventory() -> DriveInventory:
    """
    Collect the deduplicated HDD/SSD and NVMe inventory of this host.

    Raises NoDrivesFoundError if no HDD/SSD could be identified at all; that
    points to a misdetected environment rather than an empty NAS.
    """
    settings = get_settings()

    hdds = collect_hdds(settings)
    if not hdds:
        raise NoDrivesFoundError("No drives found!")

    nvmes = collect_nvmes(settings)
    return DriveInventory(hdds=hdds, nvmes=nvmes)
