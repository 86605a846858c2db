[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "churnagent"
version = "0.1.0"
description = "WSGI service that scores customer feedback for churn risk and records the results in Supabase"
requires-python = ">=3.10"
keywords = ["churn", "customer feedback", "sentiment", "wsgi", "supabase"]
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
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
churnagent-server = "churnagent.server:main"

[tool.hatch.build.targets.wheel]
packages = ["churnagent"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
