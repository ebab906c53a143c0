from typing import List

from pydantic import BaseModel, ConfigDict, Field


class DriveRecord(BaseModel):
    """A (model, firmware) pair as reported by one installed drive."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    model: str = Field(
        ...,
        min_length=1,
        description="Vendor reported model identifier, e.g. WD40EFRX-68N32N0",
    )
    firmware: str = Field(
        ...,
        min_length=1,
        description="Firmware revision string, e.g. 82.00A82",
    )

    @property
    def key(self) -> str:
        """Literal "model,firmware" string used for sorting and dedup."""
        return f"{self.model},{self.firmware}"


class DriveInventory(BaseModel):
    """Deduplicated drives of one run, split by device class."""

    hdds: List[DriveRecord] = Field(
        default_factory=list,
        description="SATA/SAS HDDs and SSDs (sata<N> and sd<x> devices).",
    )
    nvmes: List[DriveRecord] = Field(
        default_factory=list,
        description="NVMe drives found below /sys/class/nvme.",
    )
