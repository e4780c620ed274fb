"""
Simulated hardware for running the controller without a rig.

- `MockPeripheral`: answers `START_TRIAL` and streams telemetry like the handle

Examples
--------
```python
async with MockPeripheral(telemetry_port=20001, tcp_port=20002) as periph:
    ...
```
"""

from .peripheral import MockPeripheral, min_jerk

__all__ = ["MockPeripheral", "min_jerk"]
