"""
The experiment controller.

- `TrialOrchestrator`: block/trial state machine and telemetry sink
- `OperatorInputs`: subject id and confirmation prompts
- `CursorBridge`: newest handle position for the display
- `OneShot`: single-fire latch used for trial completion
- `TargetGenerator` / `TrialContext`: per-trial targets
- `run_experiment`: runs an orchestrator with its render pump and dispatch

Examples
--------
A fully automatic run against a peripheral on localhost:
```python
import asyncio
from handlab.config import get_experiment_config
from handlab.experiment import OperatorInputs, build_orchestrator, run_experiment

config = get_experiment_config("mock")
orch = build_orchestrator(config, OperatorInputs("S01", auto_confirm=True))
final_state = asyncio.run(run_experiment(orch, handlers=[print]))
```
"""

from .cursor import CursorBridge
from .operator import PROMPT, OperatorInputs, validate_subject_id
from .orchestrator import TrialOrchestrator
from .render import dispatch_notifications, render_pump
from .runner import build_orchestrator, run_experiment, run_from_config
from .signals import OneShot
from .trial import TargetGenerator, TrialContext

__all__ = [
    "CursorBridge",
    "PROMPT",
    "OperatorInputs",
    "validate_subject_id",
    "TrialOrchestrator",
    "dispatch_notifications",
    "render_pump",
    "build_orchestrator",
    "run_experiment",
    "run_from_config",
    "OneShot",
    "TargetGenerator",
    "TrialContext",
]
