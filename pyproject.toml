[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "aniupdater"
version = "0.0.5"
description = "Collects daily anime episode updates from streaming sites, stores them and serves them over HTTP."
requires-python = ">=3.10"
keywords = [
    "anime",
    "scraper",
    "spider",
    "scheduler",
    "cron",
    "bilibili",
    "iqiyi",
    "youku",
    "mikanani",
]
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
    "Framework :: Flask",
    "Framework :: AsyncIO",
    "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
]
dependencies = [
    "httpx>=0.27",
    "beautifulsoup4>=4.12",
    "sqlalchemy>=2.0",
    "flask>=3.0",
    "bcrypt>=4.0",
    "pyjwt>=2.8",
]

[project.optional-dependencies]
test = [
    "pytest>=8.0",
    "pytest-asyncio>=0.23",
    "respx>=0.21",
]

[tool.hatch.build.targets.wheel]
packages = ["aniupdater"]

[tool.hatch.build.targets.sdist]
include = ["aniupdater", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
