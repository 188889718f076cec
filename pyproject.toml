[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "teachos"
version = "0.1.0"
description = "File system image builder, buffer cache, redo log, inode file system, pipes, console and small text tools for a teaching operating system"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "filesystem",
    "inode",
    "buffer-cache",
    "write-ahead-log",
    "disk-image",
    "mkfs",
    "pipe",
    "grep",
    "operating-systems",
    "education",
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
    "Topic :: Education",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
teachos-mkfs = "teachos.mkfs:main"
teachos-cat = "teachos.tools:cat_main"
teachos-echo = "teachos.tools:echo_main"
teachos-grep = "teachos.tools:grep_main"

[tool.hatch.build.targets.wheel]
packages = ["teachos"]

[tool.hatch.build.targets.sdist]
include = ["teachos", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
