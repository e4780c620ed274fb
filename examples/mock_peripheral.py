# Stand-in for the handle rig on localhost. Run this, then in another terminal:
#   handlab run -n mock
import asyncio

import click

from handlab.mock import MockPeripheral
from handlab.util import DEFAULT_TCP_PORT, DEFAULT_UDP_PORT, start_log


@click.command()
@click.option("--udp-port", default=DEFAULT_UDP_PORT, type=int, help="Telemetry port")
@click.option("--tcp-port", default=DEFAULT_TCP_PORT, type=int, help="Command port")
@click.option("--rate", default=200.0, type=float, help="Samples per second")
@click.option("--trial-duration", default=0.8, type=float, help="Seconds per reach")
@click.option("--noise", default=0.0, type=float, help="Position noise (std)")
def main(udp_port, tcp_port, rate, trial_duration, noise):
    start_log(log_to_file=False, log_to_stdout=True, log_level="DEBUG")
    periph = MockPeripheral(
        telemetry_port=udp_port,
        tcp_port=tcp_port,
        rate=rate,
        trial_duration=trial_duration,
        noise=noise,
    )
    try:
        asyncio.run(periph.serve_forever())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
