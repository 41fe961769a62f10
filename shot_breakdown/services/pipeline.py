import asyncio
import random
from typing import Callable, Dict, List, Optional, Sequence, Set
from shot_breakdown.config import settings
from shot_breakdown.core.video import FrameCapturer, ShotAnalyzer
from shot_breakdown.exceptions import AnalysisError, EncodingError, PipelineBusyError
from shot_breakdown.models.pipeline import PipelineSnapshot, PipelineStage
from shot_breakdown.models.shot import Shot
from shot_breakdown.models.video import EncodedVideo, VideoBlob
from shot_breakdown.services.analyzer import GeminiShotAnalyzer
from shot_breakdown.utils.encoding import encode_video
from shot_breakdown.utils.keyframes import frame_extractor
from shot_breakdown.utils.logger import logger
from shot_breakdown.utils.uploads import validate_upload

PROGRESS_STARTED = 5.0
PROGRESS_ENCODED = 10.0
PROGRESS_ANALYSIS_CEILING = 85.0
PROGRESS_DONE = 100.0
TICK_STEP_RANGE = (0.2, 1.7)

GENERIC_ERROR = "An unexpected error occurred during analysis."

Listener = Callable[[PipelineSnapshot], None]

def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None

def simulate_progress(current: float, rng: random.Random, ceiling: float = PROGRESS_ANALYSIS_CEILING) -> float:
    """Cosmetic progress for the remote call: a small random step, at most half of what is left below `ceiling`."""
    remaining = ceiling - current
    if remaining <= 0:
        return current
    nxt = current + min(rng.uniform(*TICK_STEP_RANGE), remaining / 2)
    # halving the gap rounds up to the ceiling once it is below float resolution
    if nxt >= ceiling:
        return current
    return nxt

def extraction_progress(completed: int, total: int) -> float:
    if total <= 0:
        return PROGRESS_DONE
    band = PROGRESS_DONE - PROGRESS_ANALYSIS_CEILING
    return PROGRESS_ANALYSIS_CEILING + band * completed / total

class ShotPipeline:
    """
    Drives one video through encode -> Gemini analysis -> thumbnail capture.

    All state lives on the event loop. Every change produces a new immutable
    PipelineSnapshot that is pushed to subscribers. Writes carry the id of the
    run that made them and are dropped once reset() has moved on.
    """

    def __init__(
        self,
        analyzer: Optional[ShotAnalyzer] = None,
        extractor: Optional[FrameCapturer] = None,
        encoder: Callable[[VideoBlob], EncodedVideo] = encode_video,
        frame_concurrency: Optional[int] = None,
        stagger_seconds: Optional[float] = None,
        frame_timeout: Optional[float] = None,
        tick_seconds: Optional[float] = None,
        max_upload_bytes: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.analyzer = analyzer or GeminiShotAnalyzer()
        self.extractor = extractor or frame_extractor
        self.encoder = encoder
        self.frame_concurrency = max(1, frame_concurrency or settings.FRAME_CONCURRENCY)
        self.stagger_seconds = settings.FRAME_STAGGER_SECONDS if stagger_seconds is None else stagger_seconds
        self.frame_timeout = frame_timeout or settings.FRAME_TIMEOUT
        self.tick_seconds = tick_seconds or settings.PROGRESS_TICK_SECONDS
        self.max_upload_bytes = max_upload_bytes
        self._rng = rng or random.Random()

        self._run_id = 0
        self._snapshot = PipelineSnapshot()
        self._listeners: List[Listener] = []
        self._run_task: Optional[asyncio.Task] = None
        self._ticker: Optional[asyncio.Task] = None
        self._workers: List[asyncio.Task] = []
        self._thumbnails: Dict[int, str] = {}
        self._failed: Set[int] = set()
        self._completed = 0

    # -- view projection -------------------------------------------------

    def snapshot(self) -> PipelineSnapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception as e:
                logger.warning(f"Pipeline listener failed: {e}")

    def _publish(self, run_id: int, **changes) -> Optional[PipelineSnapshot]:
        if run_id != self._run_id:
            return None
        if "progress" in changes:
            # never move backwards within a run
            changes["progress"] = min(PROGRESS_DONE, max(self._snapshot.progress, changes["progress"]))
        published = self._snapshot = self._snapshot.model_copy(update=changes)
        self._notify()
        return published

    # -- lifecycle --------------------------------------------------------

    async def run(self, blob: VideoBlob) -> PipelineSnapshot:
        """
        Run the whole pipeline for `blob` and return the final snapshot.

        The work happens in a task owned by the pipeline. A reset() while it is
        in flight ends that task and returns the fresh IDLE snapshot; the
        caller's own task is never cancelled by the pipeline.
        """
        task = self.submit(blob)
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            return self._snapshot
        return task.result()

    def submit(self, blob: VideoBlob) -> asyncio.Task:
        """Validate `blob` now and run the pipeline in a task owned by this pipeline."""
        run_id = self._begin(blob)
        task = asyncio.get_running_loop().create_task(self._execute(run_id, blob))
        self._run_task = task
        return task

    def reset(self) -> PipelineSnapshot:
        self._run_id += 1
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
        for worker in self._workers:
            worker.cancel()
        self._workers = []
        if self._run_task is not None and not self._run_task.done() and self._run_task is not _current_task():
            self._run_task.cancel()
        self._run_task = None
        self._thumbnails = {}
        self._failed = set()
        self._completed = 0
        self._snapshot = PipelineSnapshot(run_id=self._run_id)
        logger.info("Pipeline reset.")
        self._notify()
        return self._snapshot

    def _begin(self, blob: VideoBlob) -> int:
        if self._snapshot.stage != PipelineStage.IDLE:
            raise PipelineBusyError(f"Pipeline is {self._snapshot.stage.value}; call reset() before submitting another video")
        validate_upload(blob, self.max_upload_bytes)

        self._run_id += 1
        self._thumbnails = {}
        self._failed = set()
        self._completed = 0
        self._snapshot = PipelineSnapshot(run_id=self._run_id)
        logger.info(f"Starting shot analysis for {blob.name}")
        self._publish(
            self._run_id,
            stage=PipelineStage.PROCESSING_VIDEO,
            message="Reading video file...",
            progress=PROGRESS_STARTED,
            video_name=blob.name,
            video_size=blob.size,
        )
        return self._run_id

    async def _execute(self, run_id: int, blob: VideoBlob) -> PipelineSnapshot:
        ticker: Optional[asyncio.Task] = None
        final: Optional[PipelineSnapshot] = None
        try:
            encoded = await asyncio.to_thread(self.encoder, blob)

            self._publish(
                run_id,
                stage=PipelineStage.ANALYZING,
                message="Gemini is analyzing shots...",
                progress=PROGRESS_ENCODED,
            )
            if run_id != self._run_id:
                return self._snapshot
            ticker = asyncio.create_task(self._tick(run_id))
            self._ticker = ticker
            try:
                shots = await self.analyzer.analyze(encoded.data, encoded.mime_type)
            finally:
                # stop the cosmetic estimate before the real result is published
                ticker.cancel()

            self._publish(
                run_id,
                stage=PipelineStage.EXTRACTING_FRAMES,
                message=f"Processing {len(shots)} shots...",
                progress=PROGRESS_ANALYSIS_CEILING,
                shots=tuple(shots),
                thumbnails={},
            )
            if run_id != self._run_id:
                return self._snapshot
            await self._extract_frames(run_id, blob, shots)

            final = self._publish(
                run_id,
                stage=PipelineStage.COMPLETED,
                message="Analysis complete!",
                progress=PROGRESS_DONE,
            )
            logger.info(
                f"Completed: {len(shots)} shots, {len(self._thumbnails)} thumbnails, {len(self._failed)} failed captures"
            )
        except (EncodingError, AnalysisError) as e:
            logger.error(f"Shot analysis failed: {e}")
            final = self._publish(run_id, stage=PipelineStage.ERROR, message="Analysis failed", error_message=str(e))
        except Exception as e:
            logger.exception(f"Unexpected pipeline failure: {e}")
            final = self._publish(run_id, stage=PipelineStage.ERROR, message="Analysis failed", error_message=str(e) or GENERIC_ERROR)
        finally:
            if ticker is not None:
                ticker.cancel()
                if self._ticker is ticker:
                    self._ticker = None
            if self._run_task is asyncio.current_task():
                self._run_task = None
        # a listener may already have reset the pipeline; report what this run ended with
        return final or self._snapshot

    # -- analyzing --------------------------------------------------------

    async def _tick(self, run_id: int) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            if run_id != self._run_id or self._snapshot.stage != PipelineStage.ANALYZING:
                return
            self._publish(run_id, progress=simulate_progress(self._snapshot.progress, self._rng))

    # -- extracting frames -----------------------------------------------

    async def _extract_frames(self, run_id: int, blob: VideoBlob, shots: Sequence[Shot]) -> None:
        total = len(shots)
        if total == 0:
            return
        queue: asyncio.Queue = asyncio.Queue()
        for index, shot in enumerate(shots):
            queue.put_nowait((index, shot.start_time_seconds))

        pool_size = min(self.frame_concurrency, total)
        logger.info(f"Extracting {total} keyframes with {pool_size} workers...")
        workers = [
            asyncio.create_task(self._frame_worker(run_id, blob, queue, total, n * self.stagger_seconds))
            for n in range(pool_size)
        ]
        self._workers = workers
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                worker.cancel()
            if self._workers is workers:
                self._workers = []

    async def _frame_worker(self, run_id: int, blob: VideoBlob, queue: asyncio.Queue, total: int, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        while run_id == self._run_id:
            try:
                index, timestamp = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                thumbnail = await asyncio.wait_for(
                    asyncio.to_thread(self.extractor.capture, blob, timestamp),
                    timeout=self.frame_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"Timed out capturing frame for shot {index} at {timestamp}s")
                self._settle_frame(run_id, index, None, total)
            except Exception as e:
                logger.warning(f"Failed to capture frame for shot {index} at {timestamp}s: {e}")
                self._settle_frame(run_id, index, None, total)
            else:
                self._settle_frame(run_id, index, thumbnail, total)

    def _settle_frame(self, run_id: int, index: int, thumbnail: Optional[str], total: int) -> None:
        if run_id != self._run_id:
            return
        if thumbnail is None:
            self._failed.add(index)
        else:
            self._thumbnails[index] = thumbnail
        self._completed += 1
        changes = dict(
            thumbnails=dict(self._thumbnails),
            failed_frames=frozenset(self._failed),
            message=f"Extracting keyframe {self._completed}/{total}...",
        )
        if self._completed < total:
            # 100% is only ever published together with COMPLETED
            changes["progress"] = extraction_progress(self._completed, total)
        self._publish(run_id, **changes)
