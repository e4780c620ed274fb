# -*- coding: utf-8 -*-
# pydoit task file
# see https://pydoit.org/
# run from this dir with `doit`, or `doit list`, `doit help` etc. (pip install doit 1st)

from doit.action import CmdAction

TEST_HELP = """echo '
Test Runner Help
================

Filter Options:
  -k, --keyword TEXT    Only run tests matching the keyword expression
                        Example: -k "receiver and not slow"
  -s, --speed TEXT      Filter tests by speed:
                        - "slow": Run only slow tests
                        - "not slow" or "fast": Skip slow tests
                        - "all": Run all tests regardless of speed
  -r, --retry           Only run previously failed tests

Output Options:
  -p, --print-logs      Print test logs to console instead of capturing
  -f, --full-trace      Show full traceback on errors
  -t, --show-time       Display duration of all tests

Examples:
  doit test_logic                     # Run all tests
  doit test_logic -k orchestrator     # Run tests containing "orchestrator"
  doit test_logic -s fast -p          # Run fast tests with logs
  doit test_logic --retry --show-time # Rerun failed tests with timing
  '"""


def _build_pytest_command(
    test_dir,
    keyword="",
    speed="",
    marker="",
    retry=False,
    print_logs=False,
    full_trace=False,
    show_time=False,
):
    """Helper function to build pytest commands for test tasks."""
    cmd = ["pytest"]

    # Add options
    if print_logs:
        cmd.append("--capture=no")
    if full_trace:
        cmd.append("--full-trace")
    if show_time:
        cmd.append("--durations=0")

    # Add common flags
    cmd.extend(["--color=yes", "-vv", "-x"])

    # Add filters
    if retry:
        cmd.append("--lf")
    if keyword:
        cmd.extend(["-k", keyword])
    markers = [marker] if marker else []
    if speed:
        if speed == "slow":
            markers.append("slow")
        elif speed in ["not slow", "fast"]:
            markers.append("not slow")
        elif speed == "all":
            pass
        else:
            raise ValueError(
                f"Invalid speed filter: {speed}. Use 'slow', 'not slow', 'fast', or 'all'"
            )
    if markers:
        cmd.extend(["-m", '"' + " and ".join(markers) + '"'])

    # Add test directory
    cmd.append(test_dir)

    return " ".join(cmd)


def _test_params():
    return [
        {"name": "help", "long": "help", "default": False, "type": bool},
        {"name": "keyword", "short": "k", "default": ""},
        {"name": "speed", "short": "s", "default": ""},
        {"name": "retry", "short": "r", "default": False, "type": bool},
        {"name": "print_logs", "short": "p", "default": False, "type": bool},
        {"name": "full_trace", "short": "f", "default": False, "type": bool},
        {"name": "show_time", "short": "t", "default": False, "type": bool},
    ]


def _test_task(marker=""):
    def router(keyword, speed, retry, print_logs, full_trace, show_time, help=False):
        if help:
            return TEST_HELP
        try:
            return _build_pytest_command(
                "test/logic/",
                keyword=keyword,
                speed=speed,
                marker=marker,
                retry=retry,
                print_logs=print_logs,
                full_trace=full_trace,
                show_time=show_time,
            )
        except ValueError as e:
            return f"echo 'Error: {str(e)}' && exit 1"

    return {
        "actions": [CmdAction(router)],
        "params": _test_params(),
        "verbosity": 2,
    }


def task_make_env():
    """Create a conda environment"""
    return {
        "actions": ["conda create --prefix ./conda_env python=3.11"],
        "targets": ["./conda_env"],
        "uptodate": [True],  # Only run if target doesn't exist
        "verbosity": 2,
    }


def task_install():
    """Install handlab in editable mode, with test extras"""
    return {
        "actions": ['pip install -e ".[test,dev]"'],
        "task_dep": ["make_env"],
        "verbosity": 2,
    }


def task_test_logic():
    """Run the logic test suite (tests in test/logic/)."""
    return _test_task()


def task_test_network():
    """Run only the tests that open local sockets (marker: network)."""
    return _test_task(marker="network")


def task_mock_peripheral():
    """Run the mock peripheral on localhost (UDP 20001 / TCP 20002)."""
    return {
        "actions": ["python examples/mock_peripheral.py"],
        "verbosity": 2,
    }


def task_format():
    """Format code using ruff."""
    return {
        "actions": [
            "ruff check --select I --fix src/handlab",
            "ruff format src/handlab",
            "ruff check --select I --fix test/",
            "ruff format test/",
            "ruff check --select I --fix dodo.py examples/",
            "ruff format dodo.py examples/",
        ],
        "verbosity": 2,
    }
