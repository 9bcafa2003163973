"""Nox sessions for workerbench testing."""

import nox

nox.options.default_venv_backend = "uv"

PYTHON_VERSIONS = ["3.10", "3.11", "3.12", "3.13"]
PYTHON_DEFAULT = "3.13"


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the test suite."""
    session.install("-e", ".[test]")
    args = session.posargs or ["-vv"]
    session.run("pytest", "tests", *args)


@nox.session(python=PYTHON_DEFAULT)
def typecheck(session: nox.Session) -> None:
    """Run type checking with pyright."""
    session.install("-e", ".")
    session.install("pyright==1.1.375")
    session.run("pyright", "workerbench", *session.posargs)
