# A complete automatic session against the mock peripheral, in one process.
import asyncio

from handlab.config import get_experiment_config
from handlab.experiment import OperatorInputs, build_orchestrator, run_experiment
from handlab.cli import ConsoleDisplay
from handlab.mock import MockPeripheral
from handlab.util import start_log

start_log(log_to_stdout=True, log_level="INFO")  # also logs to ~/.handlab/controller.log

config = get_experiment_config("mock")
config.log_dir = "./mock_logs"


async def main():
    async with MockPeripheral(
        telemetry_port=config.udp_port, tcp_port=config.tcp_port, trial_duration=0.3
    ):
        orch = build_orchestrator(config, OperatorInputs("demo", auto_confirm=True))
        return await run_experiment(orch, handlers=[ConsoleDisplay()])


final_state = asyncio.run(main())
print(f"Final state: {final_state}, logs in {config.log_dir}")
