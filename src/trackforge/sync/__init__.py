"""Import of externally issued synthesis jobs."""

from .importer import IMPORTED_MOOD, SYNCED_STYLE, ImportResult, SyncImporter, parse_id_list

__all__ = ["IMPORTED_MOOD", "SYNCED_STYLE", "ImportResult", "SyncImporter", "parse_id_list"]
