import nox

PYTHON_VERSION = "3.11"
SOURCES = ["api", "common", "marketplace", "workers", "tests"]


def _install(session):
    session.run("poetry", "install", "--extras", "test", "--extras", "dev", external=True)


@nox.session(python=PYTHON_VERSION)
def tests(session):
    _install(session)
    session.run("poetry", "run", "pytest", "tests/unit", *session.posargs, external=True)


@nox.session(python=PYTHON_VERSION)
def lint(session):
    _install(session)
    session.run("poetry", "run", "ruff", "check", *SOURCES, external=True)


@nox.session(python=PYTHON_VERSION)
def format(session):
    _install(session)
    session.run("poetry", "run", "black", "--check", *SOURCES, external=True)
