[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "teachos"
version = "0.1.0"
description = "MIPS disassembler and interpreter, COFF to NOFF and flat converters, a flat directory table and example stacks for a teaching operating system"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "mips",
    "disassembler",
    "interpreter",
    "coff",
    "noff",
    "operating-systems",
    "teaching",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Disassemblers",
    "Topic :: System :: Emulators",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
teachos-stack = "teachos.stacks:main"
teachos-coff2noff = "teachos.coff2noff:main"
teachos-coff2flat = "teachos.coff2flat:main"
teachos-run = "teachos.runner:main"
teachos-disasm = "teachos.runner:disasm_main"

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
