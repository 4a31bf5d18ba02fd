[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "open_lmm"
version = "1.0.0"
description = "LiDAR place-recognition descriptors (Scan Context, SOLiD), a k-d tree descriptor database and JSON configuration handling"
requires-python = ">=3.10"
keywords = ["lidar", "place recognition", "loop closure", "scan context", "solid", "kd-tree"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Recognition",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["open_lmm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
