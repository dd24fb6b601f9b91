"""
Postback Processor - Main Orchestrator

Coordinates postback resolution through discrete, testable steps.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, Mapping

from .calculators import CommissionEvaluator
from .errors import (
    AffiliateNotFoundError,
    HouseNotFoundError,
    InternalError,
    PostbackError,
    StorageError,
)
from .models import CommissionResult, PostbackContext, PostbackEvent
from .output import OutputBuilder
from .storage import STATUS_SUCCESS, CommissionRecorder, Directory, PostbackLogger
from .validators import InputValidator, parse_amount

logger = logging.getLogger(__name__)


class PostbackProcessor:
    """
    Main orchestrator for postback processing.

    Implements a clear pipeline pattern:
    1. Validate Input
    2. Resolve House and Affiliate (concurrently)
    3. Evaluate Commission Rules
    4. Aggregate
    5. Build Output
    6. Record Commission

    Holds no per-request state, so one instance serves concurrent requests.
    """

    def __init__(
        self,
        directory: Directory,
        recorder: CommissionRecorder | None = None,
        postback_log: PostbackLogger | None = None,
        max_workers: int = 8,
    ):
        self.directory = directory
        self.recorder = recorder if recorder is not None else directory
        self.postback_log = postback_log
        self.validator = InputValidator()
        self.evaluator = CommissionEvaluator()
        self.output_builder = OutputBuilder()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lookup")

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def process(self, event: PostbackEvent) -> Dict[str, Any]:
        """
        Process a postback through the complete pipeline.

        Raises a PostbackError subclass on failure; anything unexpected is
        wrapped in InternalError. The commission is recorded once, after
        aggregation, or not at all.
        """
        ctx = PostbackContext(event=event)
        self._transition(ctx, "received")
        self._open_log(ctx)

        try:
            output = self._run(ctx)
        except PostbackError as e:
            self._transition(ctx, "failed")
            if e.status_code >= 500:
                logger.error(f"Postback failed: {e}")
            else:
                logger.warning(f"Postback rejected: {e}")
            self._close_log(ctx, e.log_status)
            raise
        except Exception as e:
            self._transition(ctx, "failed")
            logger.error(f"Unexpected postback error: {str(e)}", exc_info=True)
            self._close_log(ctx, InternalError.log_status)
            raise InternalError(str(e)) from e

        self._close_log(ctx, STATUS_SUCCESS)
        return output

    def process_from_params(
        self,
        house_identifier: str,
        event: str,
        params: Mapping[str, Any],
        ip: str | None = None,
        raw: str | None = None,
    ) -> Dict[str, Any]:
        """
        Process a postback from raw route and query parameters.

        Convenience method for the HTTP entry points.
        """
        return self.process(PostbackEvent(
            house_identifier=house_identifier,
            event=event,
            sub_id=params.get("subid") or "",
            amount=parse_amount(params.get("amount")),
            customer_id=params.get("customer_id") or None,
            ip=ip,
            raw=raw,
        ))

    def _run(self, ctx: PostbackContext) -> Dict[str, Any]:
        event = ctx.event

        # Step 1: Validate
        self._transition(ctx, "validating")
        self.validator.validate(event)

        # Step 2: Resolve house and affiliate
        self._resolve(ctx)

        # Step 3: Evaluate commission rules
        self._transition(ctx, "evaluating")
        items = self.evaluator.evaluate(ctx.house, event.event_type, event.amount)

        # Step 4: Aggregate
        self._transition(ctx, "aggregating")
        ctx.result = CommissionResult(items=items)
        for item in items:
            logger.info(
                f"{item.kind.value} applied: {item.value}"
                + (f" ({item.percentage}% of {event.amount})" if item.percentage is not None else "")
            )

        # Step 5: Build output before the write so nothing can fail after it
        output = self.output_builder.build(ctx)
        ctx.record_id = self.recorder.record_commission(ctx.result, ctx)

        self._transition(ctx, "completed")
        logger.info(
            f"Postback processed: {ctx.affiliate.username} - {ctx.house.name} - "
            f"total commission {ctx.result.total_commission}"
        )
        return output

    def _resolve(self, ctx: PostbackContext) -> None:
        """Run both lookups concurrently and join before evaluation."""
        event = ctx.event
        self._transition(ctx, "resolving")
        house_future = self._executor.submit(self.directory.find_house_by_identifier, event.house_identifier)
        affiliate_future = self._executor.submit(self.directory.find_affiliate_by_username, event.sub_id)

        # House is checked first so a request missing both reports the house
        house = self._join(house_future, "house")
        affiliate = self._join(affiliate_future, "affiliate")

        if house is None:
            raise HouseNotFoundError(event.house_identifier)
        ctx.house = house
        logger.info(f"House found: {house.name}")

        if affiliate is None:
            raise AffiliateNotFoundError(event.sub_id)
        ctx.affiliate = affiliate
        logger.info(f"Affiliate found: {affiliate.username}")

    @staticmethod
    def _join(future: Future, entity: str):
        try:
            return future.result()
        except (OSError, FutureTimeoutError) as e:
            # Timeouts and connection failures from storage
            raise StorageError(f"{entity} lookup failed: {e}") from e

    def _transition(self, ctx: PostbackContext, stage: str) -> None:
        ctx.stage = stage
        event = ctx.event
        logger.info(
            f"[{stage}] casa={event.house_identifier} evento={event.event} "
            f"subid={event.sub_id} amount={event.amount}"
        )

    def _open_log(self, ctx: PostbackContext) -> None:
        if self.postback_log is None:
            return
        ctx.log_id = self.postback_log.open_log(ctx.event)

    def _close_log(self, ctx: PostbackContext, status: str) -> None:
        if self.postback_log is None or ctx.log_id is None:
            return
        try:
            self.postback_log.close_log(ctx.log_id, status)
        except StorageError as e:
            # The outcome is already decided; a failed audit update must not change it
            logger.error(f"Could not close postback log {ctx.log_id} as {status}: {e}")
