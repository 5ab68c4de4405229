"""
Batch submission to the provider's bulk-processing API.

Steps, aborted on the first failure:
1. Load the requested work units
2. Flatten them into WorkItems
3. Serialize one JSONL request line per WorkItem
4. Upload the JSONL file
5. Create the batch job
6. Link the job back onto the units and record usage

There is no retry and no rollback. If step 5 fails, the file uploaded in
step 4 stays on the provider with no local record of it.
"""

import json
import logging
from typing import Any, Callable, List, Optional, Sequence

from .clock import Clock, SystemClock
from .errors import ConfigurationError, DomainError
from .prompts import BATCH_SYSTEM_PROMPT
from .telemetry import UsageTelemetry
from .token_counter import RESPONSE_TOKEN_RESERVE
from .work_items import build_work_items, eligibility_report, is_batch_eligible
from ai_gateway.config.loader import GatewayConfig
from ai_gateway.storage.models import BatchJob, ProcessingMode, UsageKind, WorkItem
from ai_gateway.storage.repository import SnapshotStore

logger = logging.getLogger(__name__)

BATCH_ENDPOINT = "/v1/responses"
COMPLETION_WINDOW = "24h"
BATCH_METADATA = {"source": "ai-gateway"}
TOKENS_PER_ITEM = RESPONSE_TOKEN_RESERVE


def build_user_payload(item: WorkItem) -> str:
    lines = [f"Task: {item.unit_title}"]
    if item.description:
        lines.append(f"Description: {item.description}")
    lines.append(f"Subtask: {item.text}")
    lines.append(f"Priority: {item.priority}")
    lines.append(f"Notes: {item.notes or 'none'}")
    return "\n".join(lines)


def serialize_work_items(items: Sequence[WorkItem], model: str) -> str:
    """One Responses API request per line, each with a unique custom_id."""
    lines = []
    for index, item in enumerate(items):
        lines.append(json.dumps({
            "custom_id": f"{item.unit_id}_{index}_{item.id}",
            "method": "POST",
            "url": BATCH_ENDPOINT,
            "body": {
                "model": model,
                "input": [
                    {"role": "system", "content": BATCH_SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_payload(item)},
                ],
            },
        }))
    return "\n".join(lines)


class BatchSubmitter:
    """Turns work units into one provider batch job."""

    def __init__(
        self,
        config: GatewayConfig,
        store: SnapshotStore,
        provider_factory: Callable[[], Any],
        telemetry: Optional[UsageTelemetry] = None,
        clock: Optional[Clock] = None
    ):
        """
        Args:
            config: Gateway configuration (credential, batch model, chunk size)
            store: Snapshot store holding the work units
            provider_factory: Returns an object with upload_batch_file() and
                create_batch(); only called once there is something to submit
            telemetry: Usage log; defaults to one over the same store
            clock: Time source
        """
        self.config = config
        self.store = store
        self.provider_factory = provider_factory
        self.clock = clock or SystemClock()
        self.telemetry = telemetry or UsageTelemetry(
            store, config.usage_alert_tokens_hourly, self.clock
        )

    def submit(self, unit_ids: Sequence[str]) -> BatchJob:
        """Submit the given units as one batch job.

        Raises:
            ConfigurationError: If no provider credential is configured
            DomainError: If no units match or none has sub-items
            UpstreamFailure: If the upload or batch creation fails
        """
        if not self.config.has_credential:
            raise ConfigurationError("OPENAI_API_KEY is not configured on the server.")

        wanted = set(unit_ids)
        snapshot = self.store.load()
        units = [unit for unit in snapshot.work_units if unit.id in wanted]
        if not units:
            raise DomainError("No work units found.", {"unit_ids": list(unit_ids)})

        items: List[WorkItem] = []
        for unit in units:
            items.extend(build_work_items(unit, self.config.batch_chunk_size))
        if not items:
            raise DomainError("No subtasks to batch.", {"unit_ids": [u.id for u in units]})

        model = self.config.batch_model
        jsonl = serialize_work_items(items, model)
        now = self.clock.now()
        filename = f"ai-gateway-batch-{int(now.timestamp() * 1000)}.jsonl"

        provider = self.provider_factory()
        file_id = provider.upload_batch_file(jsonl.encode("utf-8"), filename)
        try:
            batch_id = provider.create_batch(
                file_id, BATCH_ENDPOINT, COMPLETION_WINDOW, dict(BATCH_METADATA)
            )
        except Exception:
            logger.warning("Batch creation failed; uploaded file %s is orphaned", file_id)
            raise

        matched_ids = [unit.id for unit in units]
        snapshot = self.store.load()
        for unit in snapshot.work_units:
            if unit.id in wanted:
                unit.processing_mode = ProcessingMode.BATCH
                unit.batch_job_id = batch_id
                unit.updated_at = now
        self.store.save(snapshot)

        self.telemetry.record(
            UsageKind.BATCH,
            tokens=len(items) * TOKENS_PER_ITEM,
            model=model,
            unit_ids=matched_ids,
        )
        logger.info(
            "Submitted batch %s with %d work items from %d units",
            batch_id, len(items), len(units)
        )
        return BatchJob(batch_id=batch_id, file_id=file_id, model=model, unit_ids=matched_ids)

    def submit_unit(self, unit_id: str) -> BatchJob:
        """Submit a single unit after checking it is batch-eligible.

        Raises:
            DomainError: If the unit doesn't exist or isn't eligible; the
                details of the latter carry the individual conditions
        """
        unit = self.store.load().find_unit(unit_id)
        if unit is None:
            raise DomainError("Work unit not found.", {"unit_id": unit_id})
        if not is_batch_eligible(unit):
            raise DomainError(
                "Work unit is not eligible for batch processing.",
                eligibility_report(unit),
            )
        return self.submit([unit_id])
