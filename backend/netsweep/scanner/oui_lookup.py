"""
OUI (Organizationally Unique Identifier) lookup for MAC address vendor identification.
Uses a CSV extract of the IEEE MA-L registry (Registry,Assignment,Organization Name,...).
"""

import csv
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Union

from ..core.config import settings
from .models import NOT_AVAILABLE, UNKNOWN_VENDOR

logger = logging.getLogger(__name__)

# Bundled registry extract
OUI_DATABASE_PATH = Path(__file__).resolve().parent.parent / "data" / "oui.csv"

_NON_HEX = re.compile(r"[^A-Fa-f0-9]")


def oui_for_mac(mac: str) -> Optional[str]:
    """
    Derive the OUI lookup key for a MAC address.

    Separators of any kind are dropped and the result is upper-cased, so
    "AA-BB-CC-11-22-33", "aa:bb:cc:11:22:33" and "AABBCC112233" all give
    "AABBCC". Returns None when fewer than 6 hex digits remain.
    """
    if not mac:
        return None
    cleaned = _NON_HEX.sub("", mac).upper()
    if len(cleaned) < 6:
        return None
    return cleaned[:6]


class VendorDatabase:
    """Read-only OUI prefix -> vendor name table."""

    def __init__(self, entries: Dict[str, str]):
        self._entries = dict(entries)

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[str]]) -> "VendorDatabase":
        """
        Build the table from registry rows (registry, assignment, organization, ...).
        The header row and short rows are skipped; a duplicate prefix keeps the
        first vendor seen.
        """
        entries: Dict[str, str] = {}
        for row in rows:
            if len(row) < 3:
                continue
            if row[0].strip().lower() == "registry":
                continue
            prefix = _NON_HEX.sub("", row[1]).upper()
            vendor = row[2].strip().strip('"')
            if len(prefix) < 6 or not vendor:
                continue
            entries.setdefault(prefix, vendor)
        return cls(entries)

    @classmethod
    def load(cls, path: Union[str, Path] = None) -> "VendorDatabase":
        path = Path(path or OUI_DATABASE_PATH)
        if not path.exists():
            raise FileNotFoundError(f"OUI database not found at {path}")

        with open(path, newline="", encoding="utf-8") as f:
            database = cls.from_rows(csv.reader(f))

        logger.info(f"OUI database loaded: {len(database)} vendors from {path.name}")
        return database

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, oui: str) -> Optional[str]:
        return self._entries.get(oui.upper())

    def vendor_for_mac(self, mac: str) -> str:
        """
        Look up the vendor for a MAC address.

        Returns "N/A" for an unresolved or too-short MAC and "Unknown Vendor"
        when the OUI is not in the registry.
        """
        if not mac or mac == NOT_AVAILABLE:
            return NOT_AVAILABLE

        oui = oui_for_mac(mac)
        if oui is None:
            return NOT_AVAILABLE

        return self._entries.get(oui, UNKNOWN_VENDOR)


@lru_cache()
def get_vendor_database() -> VendorDatabase:
    """Get the process-wide vendor table, loading it on first use."""
    return VendorDatabase.load(settings.OUI_DATABASE_PATH)
