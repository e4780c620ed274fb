"""Configuration type for an experiment run."""

from dataclasses import dataclass, field

from mashumaro import DataClassDictMixin

from handlab.util.defaults import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_DISPLAY_PORT,
    DEFAULT_HOST_ADDR,
    DEFAULT_LOG_CLOSE_GRACE,
    DEFAULT_RECEIVER_GRACE,
    DEFAULT_TCP_PORT,
    DEFAULT_UDP_PORT,
)


@dataclass(kw_only=True)
class ExperimentConfig(DataClassDictMixin):
    """Static parameters of one experiment run.

    Durations are in seconds, positions in workspace units.

    Targets: each trial's start position is `start_centre` plus a uniform
    offset in `[-start_jitter, +start_jitter]` per axis; the end position is
    uniform in `end_range_x` x `end_range_y`.
    """

    name: str = "default"
    total_blocks: int = 4
    trials_per_block: int = 30
    rest_time: float = 30.0
    feedback_time: float = 1.5
    feedback_message: str = "Great!"
    trial_timeout: float = 0.0  # 0 -> wait for the peripheral indefinitely
    timeout_message: str = "Time out"

    peripheral_host: str = DEFAULT_HOST_ADDR
    udp_host: str = ""  # local interface for telemetry, "" -> all
    udp_port: int = DEFAULT_UDP_PORT
    tcp_port: int = DEFAULT_TCP_PORT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    receiver_grace: float = DEFAULT_RECEIVER_GRACE
    log_close_grace: float = DEFAULT_LOG_CLOSE_GRACE
    log_dir: str = ""  # "" -> ~/.handlab/Logs

    start_centre: tuple[float, float] = (-3.0, -3.0)
    start_jitter: tuple[float, float] = (1.0, 1.0)
    end_range_x: tuple[float, float] = (-4.5, 4.5)
    end_range_y: tuple[float, float] = (-0.5, 0.5)
    seed: int | None = None

    display_host: str = DEFAULT_HOST_ADDR
    display_port: int = DEFAULT_DISPLAY_PORT
    render_interval: float = field(default=1.0 / 60.0)

    def __post_init__(self):
        if self.total_blocks < 1:
            raise ValueError(f"total_blocks must be >= 1, got {self.total_blocks}")
        if self.trials_per_block < 1:
            raise ValueError(
                f"trials_per_block must be >= 1, got {self.trials_per_block}"
            )
        for name in ("rest_time", "feedback_time", "trial_timeout", "connect_timeout"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
