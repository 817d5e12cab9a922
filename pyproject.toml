[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "epollweb"
version = "0.4.0"
description = "A small event-driven HTTP/1.x file server with a worker thread pool and connection timers"
requires-python = ">=3.10"
keywords = ["http", "server", "selectors", "threadpool", "static-files", "keep-alive"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
epollweb = "epollweb.server:main"

[tool.hatch.build.targets.wheel]
packages = ["epollweb"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
