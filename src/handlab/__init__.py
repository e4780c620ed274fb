# -*- coding: utf-8 -*-
"""# HandLab Documentation

`Handle Laboratory`: trial control and telemetry logging for planar reaching
experiments run on a robotic handle (manipulandum).

A controller process receives the handle's movement telemetry over UDP, writes
it to one CSV file per block, tells the peripheral when to start each trial
over TCP, and pushes render state to whatever display is attached.

Package layout:

- `handlab.types`: data model, notifications, configuration and errors.
- `handlab.net`: telemetry codec and receiver, command channel, notification
  publisher.
- `handlab.recording`: the per-block CSV logging pipeline.
- `handlab.experiment`: the trial/block state machine and its helpers.
- `handlab.config`: INI experiment configurations.
- `handlab.util`: defaults, logging and file conventions.
- `handlab.cli`: the `handlab` command line.
"""

from ._version import __version__
