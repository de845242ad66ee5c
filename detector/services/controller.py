from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from detector.core.engine.detector_engine import DetectorEngine
from detector.domain.events import DetectorOutput, ProcessResult
from detector.domain.models import Reading
from detector.runtime.event_bus import EventBus


@dataclass
class DetectorController:
    """
    Orchestrate one incoming reading: engine evaluation, then hand-off.

    Responsibilities
    ----------------
    - Run the reading through `DetectorEngine.process`.
    - Publish the result to an `EventBus` when it carries notify actions or a
      state transition. Publishing happens after the engine released the
      per-key lock, so delivery never delays later readings for the key.

    Parameters
    ----------
    engine
        Detector engine owning all detector instances.
    bus
        Optional event bus. If None, publishing is skipped.
    """

    engine: DetectorEngine
    bus: Optional[EventBus] = None

    def handle_reading(self, reading: Reading) -> ProcessResult:
        """
        Process one reading and return the engine result.

        Side Effects
        ------------
        - Mutates the detector instance for ``reading.key``.
        - Publishes a `DetectorOutput` to the bus if anything is worth
          dispatching.
        """
        result = self.engine.process_reading(reading)

        if self.bus is not None and (result.notifications or result.transition is not None):
            self.bus.publish(
                DetectorOutput(
                    model_name=self.engine.model.name,
                    result=result,
                    timestamp=reading.received_at,
                )
            )

        return result
