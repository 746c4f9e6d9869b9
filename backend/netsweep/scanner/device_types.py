"""
Vendor-based device type classification.

Mappings are read from an XML document of the form
<VendorMappings><Vendor name="raspberry" type="Single-board Computer"/></VendorMappings>.
Order matters: the first entry whose name occurs in the vendor string wins.
"""

import logging
import xml.etree.ElementTree as ET
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from ..core.config import settings
from .models import NOT_AVAILABLE, UNKNOWN_DEVICE_TYPE

logger = logging.getLogger(__name__)

VENDOR_MAPPINGS_PATH = Path(__file__).resolve().parent.parent / "data" / "vendor_mappings.xml"


class DeviceClassifier:
    """Ordered vendor substring -> device type table."""

    def __init__(self, entries: Iterable[Tuple[str, str]]):
        seen = set()
        ordered: List[Tuple[str, str]] = []
        for name, device_type in entries:
            key = name.strip().lower()
            if not key or not device_type.strip() or key in seen:
                continue
            seen.add(key)
            ordered.append((key, device_type.strip()))
        self._entries = tuple(ordered)

    @classmethod
    def from_xml(cls, text: str) -> "DeviceClassifier":
        root = ET.fromstring(text)
        return cls(
            (elem.get("name") or "", elem.get("type") or "")
            for elem in root.iter("Vendor")
        )

    @classmethod
    def load(cls, path: Union[str, Path] = None) -> "DeviceClassifier":
        path = Path(path or VENDOR_MAPPINGS_PATH)
        if not path.exists():
            raise FileNotFoundError(f"Vendor mappings not found at {path}")

        classifier = cls.from_xml(path.read_text(encoding="utf-8"))
        logger.info(f"Vendor mappings loaded: {len(classifier)} entries from {path.name}")
        return classifier

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[Tuple[str, str], ...]:
        return self._entries

    def classify(self, vendor: str) -> str:
        if not vendor or vendor == NOT_AVAILABLE:
            return UNKNOWN_DEVICE_TYPE

        vendor_lower = vendor.lower()
        for name, device_type in self._entries:
            if name in vendor_lower:
                return device_type
        return UNKNOWN_DEVICE_TYPE


@lru_cache()
def get_device_classifier() -> DeviceClassifier:
    """Get the process-wide classifier, loading it on first use."""
    return DeviceClassifier.load(settings.VENDOR_MAPPINGS_PATH)
