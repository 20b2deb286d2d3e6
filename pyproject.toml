[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "avstream"
version = "0.1.0"
description = "Streaming media formats: HLS playlists, MPEG-TS packets, CMCD, pcap savefiles, SIP, JPEG XS payload headers and Cinegy Air playlists"
requires-python = ">=3.10"
dependencies = []
keywords = ["hls", "m3u8", "mpeg-ts", "cmcd", "pcap", "sip", "jpeg-xs", "streaming", "video"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["avstream"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
