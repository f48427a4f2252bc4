"""
Data service: export, import and wipe everything a user owns.

An export is a plain JSON document:

    {"version": 1, "exported_at": "...",
     "collections": {"accounts": [{"id": ..., "data": {...}}, ...], ...}}

Importing writes the documents back verbatim under the caller's
own paths, so balances are restored as exported rather than
recomputed. The user profile and invite codes are never part
of an export.
"""

import structlog

from fincontrol.context import UserContext
from fincontrol.errors import InvalidPayload
from fincontrol.schemas.data import (
    DataCounts,
    DataExport,
    ExportedDocument,
    ImportMode,
)
from fincontrol.services.access_service import write_gated

logger = structlog.get_logger(__name__)

EXPORT_VERSION = 1

USER_COLLECTIONS = (
    "transactions",
    "recurringRuns",
    "recurringTemplates",
    "goals",
    "debts",
    "accounts",
    "budgets",
    "currencies",
)


class DataService:

    def __init__(self, ctx: UserContext):
        self.ctx = ctx

    def export_all(self) -> DataExport:
        collections = {}
        for name in USER_COLLECTIONS:
            docs = self.ctx.store.query(self.ctx.collection(name))
            collections[name] = [
                ExportedDocument(
                    id=doc["id"],
                    data={k: v for k, v in doc.items() if k != "id"},
                )
                for doc in docs
            ]
        logger.info(
            "data_exported",
            user_id=self.ctx.uid,
            documents=sum(len(docs) for docs in collections.values()),
        )
        return DataExport(
            version=EXPORT_VERSION,
            exported_at=self.ctx.now(),
            collections=collections,
        )

    @write_gated
    def import_all(
        self, payload: dict, mode: ImportMode | str = ImportMode.MERGE
    ) -> DataCounts:
        """
        Write an export back for the current user.

        merge keeps what is there and overwrites documents with the
        same id; replace wipes every user collection first. Entries
        without a usable id or data object are skipped, as are
        collections this service does not know. Every written
        document gets owner_id set to the caller.
        """
        if not isinstance(payload, dict) or not isinstance(
            payload.get("collections"), dict
        ):
            raise InvalidPayload("Payload has no collections object")
        try:
            mode = ImportMode(mode)
        except ValueError:
            raise InvalidPayload(f"Unknown import mode '{mode}'")

        uid = self.ctx.uid
        if mode == ImportMode.REPLACE:
            self._delete_all()

        counts = {}
        for name in USER_COLLECTIONS:
            entries = payload["collections"].get(name) or []
            if not isinstance(entries, list):
                raise InvalidPayload(f"Collection {name} is not a list")
            writes = {}
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                doc_id = entry.get("id")
                data = entry.get("data")
                if not isinstance(doc_id, str) or not doc_id or "/" in doc_id:
                    continue
                if not isinstance(data, dict):
                    continue
                writes[self.ctx.path(name, doc_id)] = {**data, "owner_id": uid}

            def body(txn, writes=writes):
                for path, data in writes.items():
                    txn.set(path, data)

            if writes:
                self.ctx.store.atomic(body)
            counts[name] = len(writes)

        logger.info("data_imported", user_id=uid, mode=mode.value, counts=counts)
        return DataCounts(mode=mode, counts=counts)

    @write_gated
    def delete_all_user_data(self) -> DataCounts:
        counts = self._delete_all()
        logger.info("data_deleted", user_id=self.ctx.uid, counts=counts)
        return DataCounts(counts=counts)

    def _delete_all(self) -> dict[str, int]:
        counts = {}
        for name in USER_COLLECTIONS:
            paths = [
                self.ctx.path(name, doc["id"])
                for doc in self.ctx.store.query(self.ctx.collection(name))
            ]

            def body(txn, paths=paths):
                for path in paths:
                    txn.delete(path)

            if paths:
                self.ctx.store.atomic(body)
            counts[name] = len(paths)
        return counts
