"""Runs a generation in a worker process and streams its results back to the consumer."""

from __future__ import annotations

from multiprocessing import Process, Queue
import queue
import time
from typing import Any, TYPE_CHECKING

import numpy as np

from tilemap_wfc.constants import EMPTY_TILE_INDEX, STREAM_DRAIN_LIMIT_DEFAULT, WORKER_JOIN_TIMEOUT
from tilemap_wfc.enums import WFCUpdateType
from tilemap_wfc.errors import WFCError
from tilemap_wfc.logging_config import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from tilemap_wfc.model.wfc import WFC

logger = get_logger(__name__)


class WFCWorker(Process):
    """Worker process that executes the WFC algorithm for one tilemap.

    Every output tile is sent back through the update queue as soon as it is determined, in resolution order (not row
    by row). The last message is either FINISHED with the complete tilemap or FAILED with the error that ended the run.
    Inherits from 'multiprocessing.Process' so the consumer's loop is never blocked by the generation.
    """

    # The generator to run (fully set up, patterns and rules already derived).
    _wfc: WFC
    # Queue used to send generation progress updates back to the consumer.
    _update_queue: Queue

    def __init__(self, wfc: WFC, update_queue: Queue) -> None:
        """Initializes the worker process.

        Args:
            wfc: The generator to run.
            update_queue: Queue used to send generation progress updates back to the consumer.
        """
        super().__init__(daemon=True)

        self._wfc = wfc
        self._update_queue = update_queue

    def run(self) -> None:
        """The main entry point for the process, overriding 'multiprocessing.Process.run()'."""
        try:
            for x, y, tile_index in self._wfc.stream():
                self._update_queue.put([WFCUpdateType.OUTPUT_CELL_COLLAPSED, (x, y), tile_index])
        except WFCError as exc:
            self._update_queue.put([WFCUpdateType.FAILED, exc])
            return
        except Exception as exc:
            logger.exception("WFC worker process crashed")
            self._update_queue.put([WFCUpdateType.FAILED, WFCError(f"worker crashed: {exc!r}")])
            return

        self._update_queue.put([WFCUpdateType.FINISHED, self._wfc.assemble_output()])


class WFCListener:
    """Consumer side of a running worker process.

    The consumer calls 'drain()' once per tick to receive a bounded number of newly determined tiles; the worker is free
    to run ahead, its messages simply queue up. The listener keeps its own copy of the tilemap assembled from the
    received tiles. A failure reported by the worker is raised from 'drain()' / 'wait()'. To cancel, call 'close()'.

    Attributes:
        is_finished: True once the worker has reported its final message (success or failure).
    """

    is_finished: bool

    # The worker process producing the updates (None if the queue is fed by someone else).
    _worker: WFCWorker | None
    # Queue the worker sends its updates through.
    _update_queue: Queue
    # The tilemap assembled from all received updates.
    _tilemap: NDArray[np.int_]
    # The error reported by the worker, raised on the next 'drain()' / 'wait()'.
    _failure: WFCError | None

    def __init__(
        self,
        update_queue: Queue,
        output_shape: tuple[int, int],
        worker: WFCWorker | None = None,
        empty_tile_index: int = EMPTY_TILE_INDEX,
    ) -> None:
        """Initializes the listener.

        Args:
            update_queue: Queue the worker sends its updates through.
            output_shape: (rows, columns) of the tilemap being generated.
            worker: The worker process producing the updates.
            empty_tile_index: The tile index of tiles that have not been received yet.
        """
        self.is_finished = False

        self._worker = worker
        self._update_queue = update_queue
        self._tilemap = np.full(output_shape, empty_tile_index, dtype=np.int_)
        self._failure = None

    @property
    def tilemap(self) -> NDArray[np.int_]:
        """The [y, x] tilemap as far as it has been received."""
        return self._tilemap

    def drain(self, max_updates: int = STREAM_DRAIN_LIMIT_DEFAULT, timeout: float = 0.0) -> list[tuple[int, int, int]]:
        """Receives up to 'max_updates' newly determined tiles.

        Args:
            max_updates: Maximum number of tiles to receive in this call.
            timeout: Seconds to wait for each message before returning what has been received so far (0 does not
                wait at all).

        Returns:
            The received (x, y, tile index) triples in the order the worker determined them.

        Raises:
            WFCError: The error the worker reported (e.g. a ContradictionError), or if the worker died without a final
                message. Raised once all tiles received before it have been handed out.
        """
        if self._failure is not None:
            raise self._failure

        received_tiles: list[tuple[int, int, int]] = []
        while len(received_tiles) < max_updates and not self.is_finished:
            try:
                update = self._update_queue.get(block=timeout > 0, timeout=timeout if timeout > 0 else None)
            except queue.Empty:
                self._check_worker_alive()
                break

            tile = self._handle_update(update)
            if tile is not None:
                received_tiles.append(tile)

        if self._failure is not None and not received_tiles:
            raise self._failure
        return received_tiles

    def wait(self, timeout: float | None = None, poll_interval: float = 0.1) -> NDArray[np.int_]:
        """Receives all remaining updates and returns the finished tilemap.

        Args:
            timeout: Maximum number of seconds to wait (None waits until the worker is done).
            poll_interval: Seconds to wait for a single message before checking whether the worker is still alive.

        Returns:
            The complete [y, x] tilemap.

        Raises:
            WFCError: The error the worker reported, or if the worker died or timed out without a final message.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self.is_finished:
            if deadline is not None and time.monotonic() > deadline:
                raise WFCError(f"generation did not finish within {timeout} seconds")

            try:
                update = self._update_queue.get(timeout=poll_interval)
            except queue.Empty:
                self._check_worker_alive()
                continue

            self._handle_update(update)

        if self._failure is not None:
            raise self._failure
        return self._tilemap

    def close(self) -> None:
        """Stops listening. A still running worker is terminated."""
        if self._worker is not None and self._worker.is_alive():
            logger.info("Terminating running WFC worker process")
            self._worker.terminate()
        if self._worker is not None:
            self._worker.join(WORKER_JOIN_TIMEOUT)
        self.is_finished = True

    def _check_worker_alive(self) -> None:
        """Turns a worker that exited without a final message into a failure of the generation."""
        if self._worker is None or self._worker.is_alive() or not self._update_queue.empty():
            return

        self._failure = WFCError(f"worker process exited with code {self._worker.exitcode} without a result")
        self.is_finished = True
        logger.error(f"WFC worker process died: {self._failure}")

    def _handle_update(self, update: list[Any]) -> tuple[int, int, int] | None:
        """Applies one message of the worker; returns the received tile for OUTPUT_CELL_COLLAPSED messages."""
        match update[0]:
            case WFCUpdateType.OUTPUT_CELL_COLLAPSED:
                (x, y), tile_index = update[1], update[2]
                self._tilemap[y, x] = tile_index
                return x, y, tile_index
            case WFCUpdateType.FINISHED:
                self._tilemap = update[1]
                self.is_finished = True
                logger.info("WFC worker process finished")
            case WFCUpdateType.FAILED:
                self._failure = update[1]
                self.is_finished = True
                logger.warning(f"WFC worker process failed: {update[1]}")
        return None


class WFCManager:
    """Creates WFC worker processes and keeps track of the ones still running."""

    # Listeners of all workers started by this manager that have not been closed yet.
    _listeners: list[WFCListener]

    def __init__(self) -> None:
        """Initializes the manager without any running worker."""
        self._listeners = []

    def generate_tilemap(self, wfc: WFC) -> WFCListener:
        """Starts a worker process running the given generator.

        Args:
            wfc: The generator to run. It is copied into the worker process, so it must not have been run before.

        Returns:
            The listener through which the consumer receives the generated tiles.
        """
        update_queue: Queue[Any] = Queue()
        worker = WFCWorker(wfc, update_queue)
        listener = WFCListener(update_queue, wfc.output_shape, worker, wfc.empty_tile_index)

        logger.info(f"Starting WFC worker process (seed: {wfc.random_seed})")
        worker.start()

        self._listeners.append(listener)
        return listener

    def abort_tilemap_generation(self) -> None:
        """Terminates all worker processes that are still running."""
        for listener in self._listeners:
            listener.close()
        self._listeners.clear()
