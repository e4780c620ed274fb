# -*- coding: utf-8 -*-
import setuptools
import pathlib
import site
import sys

# odd bug with develop (editable) installs, see: https://github.com/pypa/pip/issues/7953
site.ENABLE_USER_SITE = "--user" in sys.argv[1:]

required = [
    "numpy",
    "mashumaro[msgpack]",
    "pyzmq",
    "loguru",
    "setproctitle",
    "click>=8.0.0",
]

extras = {
    "test": [
        "pytest",
        "pytest_asyncio>=0.24.0",
    ],
    "dev": [
        "doit",
        "ruff",
    ],
}

here = pathlib.Path(__file__).parent.resolve()

long_description = (here / "README.md").read_text(encoding="utf-8")

# Read version
version = {}
with open("src/handlab/_version.py", "r") as f:
    exec(f.read(), version)

if __name__ == "__main__":
    setuptools.setup(
        name="handlab",
        version=version["__version__"],
        description="Controller for planar reaching experiments with a robotic handle.",
        long_description=long_description,
        long_description_content_type="text/markdown",
        keywords=[
            "motor control",
            "reaching",
            "robotic manipulandum",
            "experiment control",
        ],
        classifiers=[
            "License :: OSI Approved :: MIT License",
            "Development Status :: 3 - Alpha",
        ],
        license="MIT",
        package_dir={"": "src"},
        packages=setuptools.find_packages(
            where="src",
            exclude=["*.test", "*.test.*", "test.*", "test", "test_*"],
        ),
        entry_points={
            "console_scripts": [
                "handlab=handlab.cli:cli",
            ],
        },
        install_requires=required,
        extras_require=extras,
        python_requires=">= 3.11",
        package_data={"": ["*.md", "*.ini"]},
        setup_requires=["wheel"],  # force install of wheel first
    )
# https://setuptools.readthedocs.io/en/latest/userguide/datafiles.html
