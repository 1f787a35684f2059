"""Street library management.

RecordLibrary wraps a record store with the operations the app needs:
adding and editing streets, upsert imports keyed by street name,
filtering, the zone list, and review statistics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from route_recall.errors import RecordNotFoundError, ValidationError
from route_recall.logging import get_logger
from route_recall.matching.phonetic import PhoneticNormalizer
from route_recall.models.record import AddressRecord
from route_recall.review.scheduler import ReviewScheduler
from route_recall.storage import RecordStore

logger = get_logger(__name__)


def _patch(fields: dict):
    """A store change that overwrites only the given fields."""

    def change(record: AddressRecord) -> AddressRecord:
        return record.model_copy(update=fields)

    return change


# Sample Hangzhou streets installed into an empty library
DEFAULT_SEED_RECORDS: tuple[tuple[str, str, str], ...] = (
    ("文三路", "西湖 1 区", "wensanlu"),
    ("文一西路", "余杭 5 区", "wenyixilu"),
    ("博奥路", "萧山 2 区", "boaolu"),
    ("解放东路", "江干 3 区", "jiefangdonglu"),
    ("延安路", "上城 1 区", "yananlu"),
    ("体育场路", "下城 2 区", "tiyuchanglu"),
    ("古墩路", "西湖 3 区", "gudunlu"),
    ("江南大道", "滨江 1 区", "jiangnandadao"),
)


@dataclass
class ImportEntry:
    """One street row coming in from a bulk import.

    Attributes:
        street_name: Street name, the upsert key
        route_area: Zone label
        company_name: Optional company at the address
        pinyin: Optional precomputed phonetic key
    """

    street_name: str
    route_area: str
    company_name: str = ""
    pinyin: str = ""


@dataclass
class MergeSummary:
    """Counts from an upsert import."""

    added: int = 0
    updated: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.added + self.updated


@dataclass
class LibraryStats:
    """Headline numbers for the home screen."""

    total: int
    due: int
    mistakes: int
    areas: int


class RecordLibrary:
    """CRUD and import operations over a record store."""

    def __init__(self, store: RecordStore, normalizer: PhoneticNormalizer | None = None):
        """Initialize the library.

        Args:
            store: Record store
            normalizer: Used to precompute phonetic keys for new streets
        """
        self.store = store
        self.normalizer = normalizer or PhoneticNormalizer()

    def _phonetic_key(self, street_name: str) -> str:
        return self.normalizer.normalize(street_name).phonetic_key

    def add(
        self,
        street_name: str,
        route_area: str,
        company_name: str = "",
        pinyin: str = "",
        lat: float | None = None,
        lng: float | None = None,
    ) -> AddressRecord:
        """Add a new street with fresh review state.

        Raises:
            ValidationError: If the street or zone is blank
        """
        street_name = street_name.strip()
        route_area = route_area.strip()
        if not street_name or not route_area:
            raise ValidationError(
                "Street name and zone are required",
                {"street_name": street_name, "route_area": route_area},
            )

        record = AddressRecord(
            street_name=street_name,
            route_area=route_area,
            company_name=company_name.strip(),
            canonical_pinyin=pinyin.strip() or self._phonetic_key(street_name),
            lat=lat,
            lng=lng,
        )
        self.store.put(record)
        logger.info("Added street", extra={"record_id": record.id, "street": street_name})
        return record

    def edit(
        self,
        record_id: str,
        street_name: str | None = None,
        route_area: str | None = None,
        company_name: str | None = None,
    ) -> AddressRecord:
        """Change a street's display fields; review state is kept.

        Raises:
            RecordNotFoundError: If the record doesn't exist
            ValidationError: If the street or zone would become blank
        """
        record = self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)

        updates: dict = {}
        if street_name is not None:
            street_name = street_name.strip()
            if not street_name:
                raise ValidationError("Street name cannot be blank", {"record_id": record_id})
            if street_name != record.street_name:
                updates["street_name"] = street_name
                updates["canonical_pinyin"] = self._phonetic_key(street_name)
        if route_area is not None:
            route_area = route_area.strip()
            if not route_area:
                raise ValidationError("Zone cannot be blank", {"record_id": record_id})
            updates["route_area"] = route_area
        if company_name is not None:
            updates["company_name"] = company_name.strip()

        updated = record.model_copy(update=updates)
        self.store.put(updated)
        return updated

    def delete(self, record_id: str) -> bool:
        """Delete a street. Returns False if it didn't exist."""
        return self.store.delete(record_id)

    def merge(self, entries: Iterable[ImportEntry]) -> MergeSummary:
        """Upsert streets by exact street name.

        Existing streets get the new zone, and the company and phonetic key
        when the row provides them. Other streets are added. Rows without a
        street or zone are skipped.

        Existing streets are patched inside one store update, so review
        progress written while the file was being read is kept.
        """
        summary = MergeSummary()
        ids_by_name = {r.street_name: r.id for r in self.store.get_all()}
        patches: dict[str, dict] = {}
        added: dict[str, AddressRecord] = {}

        for entry in entries:
            street_name = (entry.street_name or "").strip()
            route_area = (entry.route_area or "").strip()
            if not street_name or not route_area:
                summary.skipped += 1
                continue

            fields: dict = {"route_area": route_area}
            if entry.company_name.strip():
                fields["company_name"] = entry.company_name.strip()
            if entry.pinyin.strip():
                fields["canonical_pinyin"] = entry.pinyin.strip()

            if street_name in added:
                added[street_name] = added[street_name].model_copy(update=fields)
                summary.updated += 1
            elif street_name in ids_by_name:
                patches.setdefault(ids_by_name[street_name], {}).update(fields)
                summary.updated += 1
            else:
                added[street_name] = AddressRecord(
                    street_name=street_name,
                    route_area=route_area,
                    company_name=fields.get("company_name", ""),
                    canonical_pinyin=fields.get("canonical_pinyin") or self._phonetic_key(street_name),
                )
                summary.added += 1

        if patches:
            self.store.update_many(
                {record_id: _patch(fields) for record_id, fields in patches.items()}
            )
        if added:
            self.store.put_many(added.values())

        logger.info(
            "Merged import",
            extra={"added": summary.added, "updated": summary.updated, "skipped": summary.skipped},
        )
        return summary

    def seed(self) -> int:
        """Install the sample streets into an empty library.

        Returns:
            Number of streets added (0 if the library already had data)
        """
        if self.store.get_all():
            return 0
        summary = self.merge(
            ImportEntry(street, area, pinyin=key) for street, area, key in DEFAULT_SEED_RECORDS
        )
        return summary.added

    def list_records(self, text: str = "", area: str | None = None) -> list[AddressRecord]:
        """List streets, newest first.

        Args:
            text: Keep streets whose name or zone contains this text
            area: Keep only streets in exactly this zone
        """
        text = text.strip()
        records = [
            r
            for r in self.store.get_all()
            if (not text or text in r.street_name or text in r.route_area)
            and (area is None or r.route_area == area)
        ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def areas(self) -> list[str]:
        """Distinct zone labels, sorted."""
        return sorted({r.route_area for r in self.store.get_all()})

    def stats(self, scheduler: ReviewScheduler) -> LibraryStats:
        """Totals for the library, the due set and the mistake pool."""
        records = self.store.get_all()
        return LibraryStats(
            total=len(records),
            due=len(scheduler.due_for_review(records)),
            mistakes=len(scheduler.mistake_pool(records)),
            areas=len({r.route_area for r in records}),
        )
