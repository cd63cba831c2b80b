from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from assignflow.config import SETTINGS
from assignflow.domain.errors import PreconditionError, SeriesNotFoundError
from assignflow.infra.models import utcnow
from assignflow.infra.repository import InstanceRepository, MasterSeriesRepository

from .pending_counts import PendingCountsService

logger = logging.getLogger(__name__)

RESTORED = {"is_active": True, "is_deleted": False, "deleted_at": None, "auto_delete_at": None}


@dataclass(frozen=True)
class PurgeReport:
    series: int = 0
    instances: int = 0


class RecycleService:
    """Soft delete, restore and purge.

    A master and the instances sharing its series id always move between the
    live set and the recycle bin together.
    """

    def __init__(
        self,
        masters: MasterSeriesRepository,
        instances: InstanceRepository,
        *,
        retention_days: int | None = None,
        counts: PendingCountsService | None = None,
    ) -> None:
        self._masters = masters
        self._instances = instances
        self._retention = timedelta(days=retention_days or SETTINGS.recycle_retention_days)
        self._counts = counts

    def soft_delete_series(self, series_id: str, now: datetime | None = None) -> bool:
        master = self._masters.get(series_id)
        if not master:
            raise SeriesNotFoundError(series_id)
        if master.is_deleted:
            return False

        marks = self._deleted_marks(now)
        self._masters.update(series_id, marks)
        moved = self._instances.update_by_series(series_id, marks)
        self._invalidate(master.company_id)
        logger.info("Series %s and %d instances moved to the recycle bin", series_id, moved)
        return True

    def restore_series(self, series_id: str) -> bool:
        master = self._masters.get(series_id)
        if not master:
            raise SeriesNotFoundError(series_id)
        if not master.is_deleted:
            return False

        self._masters.update(series_id, dict(RESTORED))
        restored = self._instances.update_by_series(series_id, dict(RESTORED))
        self._invalidate(master.company_id)
        logger.info("Series %s and %d instances restored", series_id, restored)
        return True

    def purge_series(self, series_id: str) -> int:
        master = self._masters.get(series_id)
        removed = self._instances.delete_by_series(series_id)
        if master:
            self._masters.delete(series_id)
            self._invalidate(master.company_id)
            logger.info("Series %s purged with %d instances", series_id, removed)
        return removed

    def soft_delete_instance(self, instance_id: int, now: datetime | None = None) -> bool:
        instance = self._instances.get(instance_id)
        if not instance:
            raise PreconditionError(f"instance {instance_id} not found")
        if instance.is_deleted:
            return False
        self._instances.update(instance_id, self._deleted_marks(now))
        self._invalidate(instance.company_id)
        return True

    def restore_instance(self, instance_id: int) -> bool:
        instance = self._instances.get(instance_id)
        if not instance:
            raise PreconditionError(f"instance {instance_id} not found")
        if not instance.is_deleted:
            return False
        if instance.series_id:
            master = self._masters.get(instance.series_id)
            if master and master.is_deleted:
                raise PreconditionError(
                    f"instance {instance_id} belongs to deleted series {instance.series_id}; restore the series"
                )
        self._instances.update(instance_id, dict(RESTORED))
        self._invalidate(instance.company_id)
        return True

    def purge_instance(self, instance_id: int) -> bool:
        instance = self._instances.get(instance_id)
        if not instance:
            return False
        self._instances.delete(instance_id)
        self._invalidate(instance.company_id)
        return True

    def purge_expired(self, now: datetime | None = None) -> PurgeReport:
        now = now or utcnow()
        series = 0
        instances = 0
        for master in self._masters.list_expired(now):
            instances += self.purge_series(master.series_id)
            series += 1
        for instance in self._instances.list_expired(now):
            if self.purge_instance(instance.id):
                instances += 1
        logger.info("Purged %d series and %d instances past retention", series, instances)
        return PurgeReport(series=series, instances=instances)

    def _deleted_marks(self, now: datetime | None) -> dict:
        deleted_at = now or utcnow()
        return {
            "is_active": False,
            "is_deleted": True,
            "deleted_at": deleted_at,
            "auto_delete_at": deleted_at + self._retention,
        }

    def _invalidate(self, company_id: str) -> None:
        if self._counts is not None:
            self._counts.invalidate(company_id)
