"""Host-facing generation session.

A session drives one generation run at a time in budgeted steps, hands
finished mesh chunks to a mesh consumer and placed instances to an
instance consumer, and tears everything down before regenerating.
"""

from dataclasses import dataclass, field
from typing import Protocol

import structlog

from .terrain.config import TerrainConfig
from .terrain.generator import GenerationResult, GenerationRun
from .terrain.meshing import MeshChunk
from .terrain.objects import StepStatus
from .types import PlacedInstance

logger = structlog.get_logger()


class MeshConsumer(Protocol):
    """Receives renderable buffers (GPU upload, collider registration)."""

    def submit(self, chunk: MeshChunk) -> None: ...


class Disposable(Protocol):
    """Handle to something a consumer created."""

    def dispose(self) -> None: ...


class InstanceConsumer(Protocol):
    """Instantiates placed instances and returns a handle for teardown."""

    def spawn(self, instance: PlacedInstance) -> Disposable: ...


@dataclass
class GenerationSession:
    """Runs terrain generation on behalf of a host.

    Call ``update`` once per host frame with a budget until it returns
    DONE. ``regenerate`` cancels the active run, disposes every tracked
    handle and starts over.
    """

    config: TerrainConfig
    mesh_consumer: MeshConsumer
    instance_consumer: InstanceConsumer

    # Internal state
    _run: GenerationRun | None = field(default=None, init=False)
    _handles: list[Disposable] = field(default_factory=list, init=False)
    _chunks_submitted: bool = field(default=False, init=False)
    _spawned_context: int = field(default=0, init=False)
    _spawned_pass: int = field(default=0, init=False)
    _result: GenerationResult | None = field(default=None, init=False)

    @property
    def run(self) -> GenerationRun | None:
        return self._run

    @property
    def handles(self) -> list[Disposable]:
        return list(self._handles)

    @property
    def result(self) -> GenerationResult | None:
        """Result of the last completed run, if any."""
        return self._result

    def start(self) -> None:
        """Start a run for the current config if none is active."""
        if self._run is not None:
            return
        self._run = GenerationRun(self.config)
        self._chunks_submitted = False
        self._spawned_context = 0
        self._spawned_pass = 0
        self._result = None
        logger.info(
            "run_started",
            seed=self.config.seed,
            width=self.config.width,
            height=self.config.height,
        )

    def update(
        self,
        max_candidates: int | None = None,
        time_budget: float | None = None,
    ) -> StepStatus:
        """Advance the active run by one budgeted step.

        Args:
            max_candidates: Most placement candidates to evaluate.
            time_budget: Seconds to spend on placement candidates.

        Returns:
            DONE once the run is finished, else IN_PROGRESS.
        """
        self.start()
        run = self._run
        if run.done:
            return StepStatus.DONE

        status = run.step(max_candidates, time_budget)
        context = run.context

        if not self._chunks_submitted:
            for chunk in context.terrain_chunks + context.base_chunks:
                self.mesh_consumer.submit(chunk)
            if context.road_chunk is not None:
                self.mesh_consumer.submit(context.road_chunk)
            self._chunks_submitted = True
            logger.info(
                "chunks_submitted",
                terrain=len(context.terrain_chunks),
                base=len(context.base_chunks),
                road=context.road_chunk is not None,
            )

        # Instances of finished passes live on the context
        while self._spawned_context < len(context.instances):
            instance = context.instances[self._spawned_context]
            self._spawned_context += 1
            if self._spawned_pass:
                # Already spawned while its pass was in flight
                self._spawned_pass -= 1
                continue
            self._spawn(instance)

        # Instances of the in-flight pass are spawned as they are accepted
        current = run.current_pass
        if current is not None:
            accepted = current.instances
            for instance in accepted[self._spawned_pass :]:
                self._spawn(instance)
            self._spawned_pass = len(accepted)

        if status is StepStatus.DONE:
            self._result = run.result()
            logger.info("run_finished", instances=len(self._handles))
        return status

    def _spawn(self, instance: PlacedInstance) -> None:
        self._handles.append(self.instance_consumer.spawn(instance))

    def run_to_completion(self, max_candidates: int | None = None) -> GenerationResult:
        """Step until the active run is done."""
        while self.update(max_candidates) is not StepStatus.DONE:
            pass
        return self._result

    def teardown(self) -> None:
        """Cancel the active run and dispose every tracked handle."""
        if self._run is not None and not self._run.done:
            self._run.cancel()
        self._run = None

        disposed = len(self._handles)
        for handle in self._handles:
            handle.dispose()
        self._handles.clear()
        if disposed:
            logger.info("handles_disposed", count=disposed)

    def regenerate(self, config: TerrainConfig | None = None) -> None:
        """Tear down the current run and start a new one.

        Args:
            config: New configuration; keeps the current one when None.
        """
        logger.info("regenerate_requested", seed=(config or self.config).seed)
        self.teardown()
        if config is not None:
            self.config = config
        self.start()
