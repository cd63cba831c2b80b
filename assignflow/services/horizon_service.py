from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Optional

from assignflow.infra.repository import InstanceRepository, MasterSeriesRepository

logger = logging.getLogger(__name__)


class HorizonService:
    """Keeps a forever series' stored end date equal to its last live due date.

    The end date on a forever master is a cache of the generated horizon; the
    instances are the source of truth.
    """

    def __init__(self, masters: MasterSeriesRepository, instances: InstanceRepository) -> None:
        self._masters = masters
        self._instances = instances

    def reconcile(self, series_id: str) -> Optional[date]:
        master = self._masters.get(series_id)
        if not master or not master.rule.forever:
            return None

        last_due = self._instances.max_due_date(series_id)
        if last_due is None or last_due == master.rule.end_date:
            return master.rule.end_date

        logger.info(
            "Series %s end date %s corrected to %s", series_id, master.rule.end_date, last_due
        )
        self._masters.upsert(replace(master, rule=replace(master.rule, end_date=last_due)))
        return last_due

    def reconcile_all(self) -> int:
        corrected = 0
        for master in self._masters.list_forever():
            before = master.rule.end_date
            if self.reconcile(master.series_id) != before:
                corrected += 1
        return corrected
