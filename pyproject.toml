[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "agstools"
version = "0.1.0"
description = "Read and write Adventure Game Studio data containers: CLIB packs, room files, TGA and BMP images"
requires-python = ">=3.10"
dependencies = []
keywords = ["ags", "adventure game studio", "clib", "archive", "targa", "tga", "bmp", "game data"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving",
    "Topic :: Games/Entertainment",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["agstools"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
