[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "teachos"
version = "0.1.0"
description = "A small teaching operating system kernel modelled in Python, with its user-space tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "kernel",
    "paging",
    "scheduler",
    "teaching",
    "shell",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Operating System",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
teachos-wc = "teachos.wc:main"
teachos-tail = "teachos.tail:main"
teachos-uniq = "teachos.uniq:main"
teachos-rm = "teachos.rm:main"

[tool.hatch.build.targets.wheel]
packages = ["teachos"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
