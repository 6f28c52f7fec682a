[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "protopirate"
version = "0.1.0"
description = "Decoders and encoders for sub-GHz car key fob protocols, with a capture history and radio state control"
requires-python = ">=3.10"
dependencies = []
keywords = ["sub-ghz", "radio", "keyfob", "decoder", "pwm", "manchester"]
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
    "Topic :: Communications :: Ham Radio",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["protopirate"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
