import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field


class Settings(BaseModel):
    # Compatibility databases
    db_dir: Path = Field(
        default=Path("/var/lib/disk-compatibility"),
        description="Directory holding the <model>_host[_v<major>].db files",
    )

    # Platform / DSM descriptors
    hw_version_path: Path = Field(
        default=Path("/proc/sys/kernel/syno_hw_version"),
        description="File containing the hardware model, e.g. DS920+",
    )
    version_path: Path = Field(
        default=Path("/etc.defaults/VERSION"),
        description="DSM version descriptor (key=\"value\" lines, majorversion)",
    )
    synoinfo_path: Path = Field(
        default=Path("/etc.defaults/synoinfo.conf"),
        description="Flat key=value system settings file",
    )

    # Device enumeration
    dev_dir: Path = Field(
        default=Path("/dev"),
        description="Directory scanned for sata<N> and sd<x> block devices",
    )
    proc_devices_path: Path = Field(
        default=Path("/proc/devices"),
        description="Driver list; NVMe is only scanned if it mentions nvme",
    )
    nvme_class_dir: Path = Field(
        default=Path("/sys/class/nvme"),
        description="sysfs directory with one entry per NVMe controller",
    )

    @classmethod
    def from_env(cls) -> "Settings":
        # Only override what is actually set, keep the DSM defaults otherwise
        overrides = {}
        for field, env in (
            ("db_dir", "SYNO_HDD_DB_DIR"),
            ("hw_version_path", "SYNO_HW_VERSION_PATH"),
            ("version_path", "SYNO_VERSION_PATH"),
            ("synoinfo_path", "SYNO_SYNOINFO_PATH"),
            ("dev_dir", "SYNO_DEV_DIR"),
            ("proc_devices_path", "SYNO_PROC_DEVICES_PATH"),
            ("nvme_class_dir", "SYNO_NVME_CLASS_DIR"),
        ):
            raw = os.getenv(env, "").strip()
            if raw:
                overrides[field] = Path(raw)

        return cls(**overrides)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
